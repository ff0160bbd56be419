# Copyright 2021 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
The `jax_smoke.render` subpackage turns simulation fields into images.

It holds no numerical logic: `colormap` maps normalized scalars to RGB and
`display` builds read-only snapshots of a state and assembles frames.
"""

import jax_smoke.render.colormap
import jax_smoke.render.display
