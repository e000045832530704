# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""Backends for the version-control tool and the repository host.

Backends are constructed once by the CLI and injected into every
component that needs them; nothing in releasetrain reaches for a
module-level client.
"""

from releasetrain.backends._run import CommandResult as CommandResult, run_command as run_command

__all__ = [
    'CommandResult',
    'run_command',
]
