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
Functions for pressure projection with a Jacobi-relaxed Poisson solve.

In an incompressible fluid the velocity field must be divergence-free. This
module drives the velocity towards that constraint with the classic three
stage projection:

1.  **Divergence**: on every interior fluid cell, with grid spacing
    `h = 1 / H`,

        div[i, j] = 0.5 * h * (u[i, j+1] - u[i, j-1] + v[i+1, j] - v[i-1, j])

    and zero everywhere else.

2.  **Poisson solve**: a fixed number of Jacobi iterations of

        p[i, j] = 0.25 * (p[i+1, j] + p[i-1, j] + p[i, j+1] + p[i, j-1] - div[i, j])

    on interior fluid cells, each reading the previous iterate only. Pressure
    on the boundary ring and inside obstacles is never solved for and keeps
    its previous value; the previous step's pressure is the initial guess.

3.  **Velocity correction**: on interior fluid cells

        u[i, j] -= 0.5 * h * (p[i, j+1] - p[i, j-1])
        v[i, j] -= 0.5 * h * (p[i+1, j] - p[i-1, j])

With only a fixed iteration budget the solve is approximate: the projection
reduces divergence rather than eliminating it.
"""
from typing import Tuple

import jax
import jax.numpy as jnp

from jax_smoke.base import finite_differences as fd
from jax_smoke.base import grids
from jax_smoke.base import obstacles

GridField = grids.GridField
ObstacleMask = obstacles.ObstacleMask

DEFAULT_ITERATIONS = 20


def grid_spacing(grid: grids.Grid) -> float:
  """The spacing `h = 1 / H` used by both difference stencils."""
  return grid.step[0]


def divergence(u: GridField, v: GridField, mask: ObstacleMask) -> GridField:
  """Computes the scaled central-difference divergence on interior fluid cells."""
  grid = grids.consistent_grid(u, v)
  h = grid_spacing(grid)
  div = 0.5 * h * (fd.central_difference(u.matrix, axis=1) +
                   fd.central_difference(v.matrix, axis=0))
  return u.with_matrix(jnp.where(mask.active(), div, jnp.zeros_like(div)))


def _pressure_sweep(p: jax.Array, div: jax.Array, active: jax.Array) -> jax.Array:
  relaxed = 0.25 * (fd.neighbor_sum(p) - div)
  return jnp.where(active, relaxed, p).astype(p.dtype)


def solve_pressure(
    pressure: GridField,
    div: GridField,
    mask: ObstacleMask,
    iterations: int = DEFAULT_ITERATIONS,
) -> GridField:
  """
  Relaxes the pressure Poisson equation with double-buffered Jacobi sweeps.

  Args:
    pressure: The initial guess, normally the previous step's pressure.
    div: The right-hand side, as returned by `divergence`.
    mask: The obstacle mask.
    iterations: The fixed number of Jacobi sweeps.

  Returns:
    The relaxed pressure. Boundary-ring and solid cells are unchanged.
  """
  grids.consistent_grid(pressure, div)
  active = mask.active()
  div_matrix = div.matrix
  relaxed = jax.lax.fori_loop(
      0, iterations,
      lambda _, p: _pressure_sweep(p, div_matrix, active),
      pressure.matrix)
  return pressure.with_matrix(relaxed)


def correct_velocity(
    u: GridField,
    v: GridField,
    pressure: GridField,
    mask: ObstacleMask,
) -> Tuple[GridField, GridField]:
  """Subtracts the scaled pressure gradient from the velocity."""
  grid = grids.consistent_grid(u, v, pressure)
  h = grid_spacing(grid)
  active = mask.active()
  p = pressure.matrix
  # The row-direction component is corrected by the column-direction pressure
  # difference and vice versa, mirroring the pairing used in `divergence`.
  u_new = u.matrix - 0.5 * h * fd.central_difference(p, axis=1)
  v_new = v.matrix - 0.5 * h * fd.central_difference(p, axis=0)
  return (u.with_matrix(jnp.where(active, u_new, u.matrix)),
          v.with_matrix(jnp.where(active, v_new, v.matrix)))


def project(
    pressure: GridField,
    u: GridField,
    v: GridField,
    mask: ObstacleMask,
    iterations: int = DEFAULT_ITERATIONS,
) -> Tuple[GridField, GridField, GridField]:
  """
  Runs the full projection: divergence, Poisson solve, velocity correction.

  Returns:
    The tuple `(pressure, u, v)` after projection.
  """
  div = divergence(u, v, mask)
  pressure = solve_pressure(pressure, div, mask, iterations)
  u, v = correct_velocity(u, v, pressure, mask)
  return pressure, u, v
