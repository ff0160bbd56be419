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
This `__init__.py` file makes `jax_smoke` a Python package.

`jax_smoke` is a two-dimensional incompressible smoke solver written in JAX.
Smoke is injected through an inlet band on the left wall, pushed by a uniform
body force, carried by semi-Lagrangian advection, smoothed by Jacobi-relaxed
diffusion and kept approximately divergence-free by a pressure projection.
A single static obstacle can be stamped into the domain.

A typical driver loop::

    from jax_smoke import Simulator, SimulationConfig
    from jax_smoke.render import display

    sim = Simulator(SimulationConfig(obstacle='disk'))
    for _ in range(100):
      sim.step()
    frame = display.render_frame(sim.snapshot('smoke'))
"""

# Validated, immutable run configuration and its error type.
import jax_smoke.config

# The `base` subpackage contains the grid data structures and every stage of
# the solver, from force application to pressure projection, along with the
# `Simulator` that drives them.
import jax_smoke.base

# The `render` subpackage converts fields to colour frames for display.
import jax_smoke.render

from jax_smoke.base.time_stepping import Simulator
from jax_smoke.config import ConfigurationError
from jax_smoke.config import SimulationConfig
