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
This `__init__.py` file makes the `jax_smoke.base` directory a Python package.

By importing the key modules here, users can reach the solver components with
a simple import statement, such as `from jax_smoke.base import grids`.
"""

# --- Foundational data structures ---

# The `Grid` geometry and the flat, row-major `GridField` storage.
import jax_smoke.base.grids

# The boolean obstacle mask and the shapes that can be stamped into it.
import jax_smoke.base.obstacles

# Whole-array shifts and difference stencils.
import jax_smoke.base.finite_differences

# Bilinear sampling at fractional cell coordinates.
import jax_smoke.base.interpolation


# --- Operator-split solver stages ---

import jax_smoke.base.forcings
import jax_smoke.base.advection
import jax_smoke.base.diffusion
import jax_smoke.base.pressure


# --- State, diagnostics and time integration ---

# The `SimulationState` PyTree that bundles every field.
import jax_smoke.base.state

import jax_smoke.base.diagnostics

# The step function factory and the `Simulator` driver.
import jax_smoke.base.time_stepping
