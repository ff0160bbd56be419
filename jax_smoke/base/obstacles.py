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
Static solid geometry for the smoke solver.

An obstacle is represented by a boolean mask on the simulation grid. Cells set
to True are solid: every solver stage leaves them untouched, so their values
stay frozen at whatever they held when the shape was stamped.

Shapes are rasterized once, at setup time, with NumPy. The resulting mask is
carried in the simulation state and passed to the jitted step function like
any other field. Rasterization has two layers:

1.  **Shape geometry** (`rectangle_cells`, `disk_cells`, `diagonal_cells`):
    each returns a boolean `(H, W)` matrix for one shape placed at the grid
    centre. Index arithmetic that would land outside the grid is discarded
    before anything is written, so small grids never wrap or overflow.

2.  **Stamping** (`stamp`): ORs a shape into an existing `ObstacleMask`.
    Stamping only ever sets cells to True, so it is monotonic and stamping the
    same shape twice yields the same mask as stamping it once.
"""
from __future__ import annotations

import dataclasses
import logging
import math
from typing import Optional, Union

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class
import numpy as np

from jax_smoke.base import grids
from jax_smoke.config import ObstacleShape

logger = logging.getLogger(__name__)

Array = grids.Array
Grid = grids.Grid


@dataclasses.dataclass(frozen=True)
class RectangleParams:
  """An axis-aligned rectangle `2*half_height` rows by `2*half_width` columns."""
  half_height: int = 25
  half_width: int = 25


@dataclasses.dataclass(frozen=True)
class DiskParams:
  radius: int = 25


@dataclasses.dataclass(frozen=True)
class DiagonalParams:
  """
  A band centred on the main diagonal through the grid centre.

  The band covers `2*half_length` columns. `thickness` is measured
  perpendicular to the diagonal, so a cell `(i, j)` in that window is solid
  when `|i - j| * sqrt(2) <= thickness`.
  """
  half_length: int = 25
  thickness: int = 10


ShapeParams = Union[RectangleParams, DiskParams, DiagonalParams]

_DEFAULT_PARAMS = {
    ObstacleShape.RECTANGLE: RectangleParams(),
    ObstacleShape.DISK: DiskParams(),
    ObstacleShape.DIAGONAL: DiagonalParams(),
}


def _mark(cells: np.ndarray, rows: np.ndarray, cols: np.ndarray) -> None:
  """Sets `cells[rows, cols] = True`, dropping indices outside the grid."""
  height, width = cells.shape
  keep = (rows >= 0) & (rows < height) & (cols >= 0) & (cols < width)
  cells[rows[keep], cols[keep]] = True


def rectangle_cells(grid: Grid, params: RectangleParams) -> np.ndarray:
  cells = np.zeros(grid.shape, dtype=bool)
  center_row, center_col = grid.height // 2, grid.width // 2
  rows = np.arange(center_row - params.half_height,
                   center_row + params.half_height)
  cols = np.arange(center_col - params.half_width,
                   center_col + params.half_width)
  rr, cc = np.meshgrid(rows, cols, indexing='ij')
  _mark(cells, rr.ravel(), cc.ravel())
  return cells


def disk_cells(grid: Grid, params: DiskParams) -> np.ndarray:
  """
  Rasterizes a disk row by row.

  For each row offset `dy` in `[-r, r)` the horizontal half-chord is
  `floor(sqrt(r**2 - dy**2))` and columns `[c - L, c + L)` are marked.
  """
  cells = np.zeros(grid.shape, dtype=bool)
  r = params.radius
  center_row, center_col = grid.height // 2, grid.width // 2
  for dy in range(-r, r):
    half_chord = math.floor(math.sqrt(r * r - dy * dy))
    cols = np.arange(center_col - half_chord, center_col + half_chord)
    rows = np.full_like(cols, center_row + dy)
    _mark(cells, rows, cols)
  return cells


def diagonal_cells(grid: Grid, params: DiagonalParams) -> np.ndarray:
  # Row offsets from the diagonal; positions past the grid edge are discarded.
  cells = np.zeros(grid.shape, dtype=bool)
  center = grid.height // 2
  half_width = math.floor(params.thickness / math.sqrt(2))
  k = np.arange(center - params.half_length, center + params.half_length)
  offsets = np.arange(-half_width, half_width + 1)
  kk, dd = np.meshgrid(k, offsets, indexing='ij')
  _mark(cells, (kk + dd).ravel(), kk.ravel())
  return cells


_RASTERIZERS = {
    ObstacleShape.RECTANGLE: (rectangle_cells, RectangleParams),
    ObstacleShape.DISK: (disk_cells, DiskParams),
    ObstacleShape.DIAGONAL: (diagonal_cells, DiagonalParams),
}


def shape_cells(
    grid: Grid,
    shape: Union[ObstacleShape, str],
    params: Optional[ShapeParams] = None,
) -> np.ndarray:
  """
  Returns the boolean `(H, W)` footprint of `shape` placed at the grid centre.

  Args:
    grid: The simulation grid.
    shape: An `ObstacleShape` or its name; unknown names raise
      `ConfigurationError`.
    params: Shape dimensions. Defaults to 25-cell sizes.

  Raises:
    TypeError: if `params` belongs to a different shape.
  """
  shape = ObstacleShape.parse(shape)
  rasterize, params_type = _RASTERIZERS[shape]
  if params is None:
    params = _DEFAULT_PARAMS[shape]
  if not isinstance(params, params_type):
    raise TypeError(
        f'{shape.value} expects {params_type.__name__}, got {type(params).__name__}')
  return rasterize(grid, params)


@register_pytree_node_class
@dataclasses.dataclass
class ObstacleMask:
  """
  A boolean solid mask stored as a flat, row-major buffer on a `Grid`.

  Attributes:
    data: 1D boolean array of length `grid.size`; True marks a solid cell.
    grid: The `Grid` the mask is defined on.
  """
  data: Array
  grid: Grid

  def tree_flatten(self):
    return (self.data,), (self.grid,)

  @classmethod
  def tree_unflatten(cls, aux_data, children):
    return cls(*children, *aux_data)

  @classmethod
  def empty(cls, grid: Grid) -> ObstacleMask:
    return cls(jnp.zeros((grid.size,), dtype=bool), grid)

  @classmethod
  def from_matrix(cls, solid: Array, grid: Optional[Grid] = None) -> ObstacleMask:
    solid = jnp.asarray(solid, dtype=bool)
    if grid is None:
      grid = Grid(solid.shape)
    elif tuple(solid.shape) != grid.shape:
      raise ValueError(
          f'mask shape {solid.shape} does not match grid {grid.shape}')
    return cls(jnp.ravel(solid), grid)

  @property
  def solid(self) -> jax.Array:
    """The `(H, W)` boolean view of the mask."""
    return jnp.reshape(self.data, self.grid.shape)

  @property
  def count(self) -> int:
    return int(jnp.sum(self.data))

  def is_solid(self, row: int, col: int) -> bool:
    return bool(self.data[self.grid.index(row, col)])

  def union(self, other: ObstacleMask) -> ObstacleMask:
    if other.grid != self.grid:
      raise grids.InconsistentGridError(
          f'masks do not share a grid: {self.grid} vs {other.grid}')
    return ObstacleMask(self.data | other.data, self.grid)

  def active(self) -> jax.Array:
    """`(H, W)` matrix of the cells the solver updates: interior and fluid."""
    return jnp.asarray(grids.interior_mask(self.grid)) & ~self.solid


def stamp(
    mask: ObstacleMask,
    shape: Union[ObstacleShape, str],
    params: Optional[ShapeParams] = None,
) -> ObstacleMask:
  """
  Stamps `shape` into `mask` and returns the new mask.

  Cells already solid stay solid; no cell is ever cleared.
  """
  cells = shape_cells(mask.grid, shape, params)
  stamped = mask.union(ObstacleMask.from_matrix(cells, mask.grid))
  logger.debug('stamped %s: %d solid cells', ObstacleShape.parse(shape).value,
               int(cells.sum()))
  return stamped
