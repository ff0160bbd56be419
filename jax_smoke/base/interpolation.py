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
Off-grid sampling of cell-centred fields.

Coordinates here are fractional *cell indices*: `(i, j) = (2.0, 3.0)` is the
centre of cell `(2, 3)` and `(2.5, 3.0)` lies halfway to cell `(3, 3)`.

The semi-Lagrangian advection step needs two things from this module:

-   `clamp_coordinates`: keeps a traced-back point at least half a cell away
    from the outer ring, so that the 2x2 bilinear stencil `(i0, i0 + 1) x
    (j0, j0 + 1)` around it is always inside the grid.
-   `bilinear`: samples a field at many fractional points at once.
"""
from typing import Tuple

import jax
import jax.numpy as jnp
import jax.scipy.ndimage

from jax_smoke.base import grids

Array = grids.Array
GridField = grids.GridField

# Distance kept between a sample point and the first/last lattice index.
STENCIL_MARGIN = 0.5


def clamp_coordinates(
    rows: Array,
    cols: Array,
    grid: grids.Grid,
) -> Tuple[jax.Array, jax.Array]:
  """Clamps rows to `[0.5, H - 1.5]` and columns to `[0.5, W - 1.5]`."""
  rows = jnp.clip(rows, STENCIL_MARGIN, grid.height - 1 - STENCIL_MARGIN)
  cols = jnp.clip(cols, STENCIL_MARGIN, grid.width - 1 - STENCIL_MARGIN)
  return rows, cols


def bilinear(field: GridField, rows: Array, cols: Array) -> jax.Array:
  """
  Bilinearly interpolates `field` at the fractional indices `(rows, cols)`.

  With `s = row - floor(row)` and `t = col - floor(col)` the result is

      (1-s) * ((1-t) * f[i0, j0] + t * f[i0, j1])
        + s * ((1-t) * f[i1, j0] + t * f[i1, j1])

  which is exactly first-order `map_coordinates`. Points must already be
  clamped; no boundary mode is relied on.

  Args:
    field: The field to sample.
    rows: Fractional row indices, any shape.
    cols: Fractional column indices, same shape as `rows`.

  Returns:
    An array shaped like `rows` with the interpolated values.
  """
  return jax.scipy.ndimage.map_coordinates(
      field.matrix, [rows, cols], order=1, mode='nearest')
