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
Module for the viscous diffusion of velocity and smoke density.

Diffusion is applied implicitly, `(I - k * L) c_new = c_old`, and the linear
system is relaxed with a fixed number of Jacobi iterations instead of being
solved to a tolerance. One Jacobi sweep computes, on every interior fluid
cell,

    c_new[i, j] = (c[i, j] + k * (c[i+1, j] + c[i-1, j] + c[i, j+1] + c[i, j-1]))
                  / (1 + 4 * k)

reading only from the previous iterate `c`. Because the new value is a convex
combination of the old cell and its four neighbours, each sweep obeys a
discrete maximum principle: no value leaves the `[min, max]` range of its own
5-point neighbourhood.

The coefficient is `k = dt * viscosity * H * W`. Scaling with the grid *area*
rather than `1 / h**2` makes the effective diffusion depend on the
resolution.
"""
import jax
import jax.numpy as jnp

from jax_smoke.base import finite_differences as fd
from jax_smoke.base import grids
from jax_smoke.base import obstacles

GridField = grids.GridField
ObstacleMask = obstacles.ObstacleMask

DEFAULT_ITERATIONS = 20


def diffusion_coefficient(viscosity: float, dt: float, grid: grids.Grid) -> float:
  """Returns `k = dt * viscosity * H * W`."""
  return dt * viscosity * grid.height * grid.width


def _sweep(matrix: jax.Array, active: jax.Array, k) -> jax.Array:
  relaxed = (matrix + k * fd.neighbor_sum(matrix)) / (1 + 4 * k)
  return jnp.where(active, relaxed, matrix).astype(matrix.dtype)


def jacobi_diffusion_sweep(
    field: GridField,
    mask: ObstacleMask,
    viscosity: float,
    dt: float,
) -> GridField:
  """Performs a single Jacobi iteration of the implicit diffusion update."""
  k = diffusion_coefficient(viscosity, dt, field.grid)
  return field.with_matrix(_sweep(field.matrix, mask.active(), k))


def diffuse(
    field: GridField,
    mask: ObstacleMask,
    viscosity: float,
    dt: float,
    iterations: int = DEFAULT_ITERATIONS,
) -> GridField:
  """
  Diffuses `field` with `iterations` double-buffered Jacobi sweeps.

  Boundary-ring and solid cells are left untouched throughout.

  Args:
    field: The quantity to diffuse (a velocity component or the density).
    mask: The obstacle mask.
    viscosity: The kinematic viscosity (or diffusivity).
    dt: The time step.
    iterations: The fixed number of Jacobi sweeps.

  Returns:
    The diffused field.
  """
  k = diffusion_coefficient(viscosity, dt, field.grid)
  active = mask.active()
  # Every sweep maps the previous iterate to a fresh array, so reads and
  # writes never alias within an iteration.
  relaxed = jax.lax.fori_loop(
      0, iterations, lambda _, m: _sweep(m, active, k), field.matrix)
  return field.with_matrix(relaxed)
