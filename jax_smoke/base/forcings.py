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
Explicit source terms: external body forces and smoke injection.

Both are forward-Euler accumulations restricted to interior fluid cells:

    v <- v + f * dt        (velocity, per component)
    d <- d + s * dt        (smoke density)

Nothing is clamped. Without dissipation elsewhere in the step, density and
velocity grow without bound.
"""
from typing import Tuple

from jax_smoke.base import grids
from jax_smoke.base import obstacles

GridField = grids.GridField
ObstacleMask = obstacles.ObstacleMask


def _accumulate(
    field: GridField,
    rate: GridField,
    mask: ObstacleMask,
    dt: float,
) -> GridField:
  grids.consistent_grid(field, rate)
  return grids.where(mask.active(), field + rate * dt, field)


def apply_forces(
    u: GridField,
    v: GridField,
    force_u: GridField,
    force_v: GridField,
    mask: ObstacleMask,
    dt: float,
) -> Tuple[GridField, GridField]:
  """
  Adds `force * dt` to both velocity components on interior fluid cells.

  Args:
    u: Row-direction velocity.
    v: Column-direction velocity.
    force_u: Row-direction body force per cell.
    force_v: Column-direction body force per cell.
    mask: The obstacle mask; solid cells are not updated.
    dt: The time step.

  Returns:
    The updated `(u, v)`.
  """
  return (_accumulate(u, force_u, mask, dt),
          _accumulate(v, force_v, mask, dt))


def source_smoke(
    density: GridField,
    source: GridField,
    mask: ObstacleMask,
    dt: float,
) -> GridField:
  """Adds `source * dt` to the smoke density on interior fluid cells."""
  return _accumulate(density, source, mask, dt)
