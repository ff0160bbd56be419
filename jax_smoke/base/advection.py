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
Semi-Lagrangian transport of cell-centred scalars.

Each interior fluid cell `(i, j)` is traced backwards along the velocity to
its departure point

    (x, y) = (i - dt * u[i, j], j - dt * v[i, j])

measured in cell indices, and takes the value of the field interpolated there.
The departure point is clamped to `[0.5, dim - 1.5]` so the bilinear stencil
never leaves the grid. The method is unconditionally stable but diffusive.

Boundary behaviour: the interpolated values are gathered into a scratch
buffer that is zero outside interior fluid cells, and the buffer is then
committed to *every* fluid cell of the grid, the outer ring included. Each
call therefore resets the non-solid boundary ring to zero, which acts as a
zero-value wall condition for velocity and density alike. Solid cells are
never written.
"""
from typing import Tuple

import jax
import jax.numpy as jnp

from jax_smoke.base import grids
from jax_smoke.base import interpolation
from jax_smoke.base import obstacles

GridField = grids.GridField
ObstacleMask = obstacles.ObstacleMask


def backtrace(
    u: GridField,
    v: GridField,
    dt: float,
) -> Tuple[jax.Array, jax.Array]:
  """
  Returns the clamped departure points of every cell as `(rows, cols)`.

  Both outputs are `(H, W)` matrices of fractional cell indices, clamped to
  `[0.5, H - 1.5]` and `[0.5, W - 1.5]` respectively.
  """
  grid = grids.consistent_grid(u, v)
  rows, cols = grid.indices()
  departure_rows = rows - dt * u.matrix
  departure_cols = cols - dt * v.matrix
  return interpolation.clamp_coordinates(departure_rows, departure_cols, grid)


def advect(
    u: GridField,
    v: GridField,
    field: GridField,
    mask: ObstacleMask,
    dt: float,
) -> GridField:
  """
  Advects `field` by the velocity `(u, v)` over one time step.

  Args:
    u: Row-direction velocity used for the backtrace.
    v: Column-direction velocity used for the backtrace.
    field: The quantity to transport; may be `u` or `v` itself.
    mask: The obstacle mask.
    dt: The time step.

  Returns:
    The advected field. Interior fluid cells hold the interpolated values,
    boundary fluid cells are zero and solid cells keep their old values.
  """
  grids.consistent_grid(u, v, field)
  rows, cols = backtrace(u, v, dt)
  sampled = interpolation.bilinear(field, rows, cols)
  scratch = jnp.where(mask.active(), sampled, jnp.zeros_like(sampled))
  return field.with_matrix(jnp.where(mask.solid, field.matrix, scratch))
