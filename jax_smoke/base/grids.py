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
Core data structures for the collocated simulation grid.

Every quantity of the smoke solver (both velocity components, pressure,
density, source strength and forcing) lives at the centre of the same H x W
cells, so a single `Grid` describes all of them. The key concepts are:

- `Grid`: the static shape of the domain together with the explicit
  `(row, col) -> index` mapping of its row-major storage.
- `GridField`: a flat, contiguous buffer of `H * W` values bound to a `Grid`.
  It is registered as a JAX PyTree, so whole simulation states can be passed
  through `jax.jit` and `jax.lax` loops.

Stencil kernels never index the flat buffer cell by cell. They take the
`(H, W)` view returned by `GridField.matrix` (a reshape of the contiguous
buffer, not a copy of each row), build the new values with whole-array
operations and wrap them back with `GridField.with_matrix`.
"""
# This import allows a class to use its own name in type hints before it is fully defined.
from __future__ import annotations

import dataclasses
import numbers
import operator
from typing import Optional, Sequence, Tuple, Union

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class
import numpy as np

# --- Type Aliases ---
Array = Union[np.ndarray, jax.Array]


class InconsistentGridError(Exception):
  """Raised when combining fields defined on different grids."""


@dataclasses.dataclass(init=False, frozen=True)
class Grid:
  """
  Describes the shape and physical extent of the 2D computational grid.

  The grid is immutable (`frozen=True`) because the domain never changes
  during a simulation; it is therefore safe to use as static PyTree metadata.

  Attributes:
    shape: `(height, width)`, the number of cells along rows and columns.
    step: The physical size of one cell along each axis. With the default
      unit domain this is `(1 / height, 1 / width)`, i.e. the grid spacing
      `h` used by the pressure projection.
    domain: `((row_min, row_max), (col_min, col_max))`.
  """
  shape: Tuple[int, int]
  step: Tuple[float, float]
  domain: Tuple[Tuple[float, float], Tuple[float, float]]

  def __init__(
      self,
      shape: Sequence[int],
      domain: Optional[Sequence[Tuple[float, float]]] = None,
  ):
    shape = tuple(operator.index(s) for s in shape)
    if len(shape) != 2:
      raise ValueError(f'only 2D grids are supported, got shape {shape}')
    if any(s <= 0 for s in shape):
      raise ValueError(f'grid dimensions must be positive, got {shape}')
    # Use object.__setattr__ because the dataclass is frozen.
    object.__setattr__(self, 'shape', shape)

    if domain is None:
      domain = ((0.0, 1.0), (0.0, 1.0))
    if len(domain) != 2 or any(len(bounds) != 2 for bounds in domain):
      raise ValueError(f'domain must be a pair of (lower, upper) bounds: {domain}')
    domain = tuple((float(lower), float(upper)) for lower, upper in domain)
    object.__setattr__(self, 'domain', domain)

    step = tuple(
        (upper - lower) / size for (lower, upper), size in zip(domain, shape))
    object.__setattr__(self, 'step', step)

  @property
  def ndim(self) -> int:
    return 2

  @property
  def height(self) -> int:
    return self.shape[0]

  @property
  def width(self) -> int:
    return self.shape[1]

  @property
  def size(self) -> int:
    """The number of cells, i.e. the length of every flat field buffer."""
    return self.shape[0] * self.shape[1]

  def index(self, row, col):
    """Maps `(row, col)` to the position of that cell in a flat buffer."""
    return row * self.width + col

  def unravel(self, index) -> Tuple[int, int]:
    """Inverse of `index`."""
    return divmod(index, self.width)

  def indices(self) -> Tuple[jax.Array, jax.Array]:
    """Returns `(rows, cols)` integer matrices holding each cell's indices."""
    rows = jnp.arange(self.height)
    cols = jnp.arange(self.width)
    return tuple(jnp.meshgrid(rows, cols, indexing='ij'))


def interior_mask(grid: Grid) -> np.ndarray:
  """
  Returns a boolean `(H, W)` matrix that is True away from the outer ring.

  The outermost rows and columns are the domain boundary. Forcing, smoke
  sourcing, diffusion and the pressure solve only ever update cells with
  `1 <= i <= H - 2` and `1 <= j <= W - 2`.
  """
  mask = np.zeros(grid.shape, dtype=bool)
  mask[1:-1, 1:-1] = True
  return mask


@register_pytree_node_class
@dataclasses.dataclass
class GridField(np.lib.mixins.NDArrayOperatorsMixin):
  """
  A scalar field stored as a flat, row-major buffer on a `Grid`.

  By registering this class as a JAX PyTree and using NumPy's
  `NDArrayOperatorsMixin`, fields support arithmetic directly
  (`field * dt`, `a + b`) and JAX traces through the underlying buffer.

  Fields are immutable: every "write" (`set`, `fill`, `with_matrix`) returns
  a new `GridField` that shares the grid of the original.

  Attributes:
    data: 1D array of length `grid.size`; cell `(i, j)` is at `i * W + j`.
    grid: The `Grid` this field is defined on.
  """
  data: Array
  grid: Grid

  def tree_flatten(self):
    """The buffer is the traced child; the grid is static auxiliary data."""
    children = (self.data,)
    aux_data = (self.grid,)
    return children, aux_data

  @classmethod
  def tree_unflatten(cls, aux_data, children):
    return cls(*children, *aux_data)

  # --- Construction ---

  @classmethod
  def full(cls, grid: Grid, value: float, dtype=None) -> GridField:
    return cls(jnp.full((grid.size,), value, dtype=dtype), grid)

  @classmethod
  def zeros(cls, grid: Grid, dtype=None) -> GridField:
    return cls(jnp.zeros((grid.size,), dtype=dtype), grid)

  @classmethod
  def from_matrix(cls, matrix: Array, grid: Optional[Grid] = None) -> GridField:
    """Wraps an `(H, W)` matrix, flattening it in row-major order."""
    matrix = jnp.asarray(matrix)
    if grid is None:
      grid = Grid(matrix.shape)
    elif tuple(matrix.shape) != grid.shape:
      raise ValueError(
          f'matrix shape {matrix.shape} does not match grid {grid.shape}')
    return cls(jnp.ravel(matrix), grid)

  # --- Access ---

  @property
  def dtype(self):
    return self.data.dtype

  @property
  def shape(self) -> Tuple[int, int]:
    """The logical `(H, W)` shape; the buffer itself is one-dimensional."""
    return self.grid.shape

  @property
  def matrix(self) -> jax.Array:
    """The `(H, W)` row-major view of the buffer used by stencil kernels."""
    return jnp.reshape(self.data, self.grid.shape)

  def get(self, row, col):
    return self.data[self.grid.index(row, col)]

  def set(self, row, col, value) -> GridField:
    return GridField(self.data.at[self.grid.index(row, col)].set(value),
                     self.grid)

  def fill(self, value) -> GridField:
    return GridField(jnp.full_like(self.data, value), self.grid)

  def clone(self) -> GridField:
    return GridField(jnp.array(self.data, copy=True), self.grid)

  def with_matrix(self, matrix: Array) -> GridField:
    """Returns a field on the same grid holding the given `(H, W)` values."""
    return GridField(jnp.ravel(matrix), self.grid)

  # --- Arithmetic ---

  _HANDLED_TYPES = (numbers.Number, np.ndarray, jax.Array)

  def __array_ufunc__(self, ufunc, method, *inputs, **kwargs):
    """Applies the `jax.numpy` twin of a NumPy ufunc to the raw buffers."""
    for x in inputs:
      if not isinstance(x, self._HANDLED_TYPES + (GridField,)):
        return NotImplemented
    if method != '__call__':
      return NotImplemented
    try:
      func = getattr(jnp, ufunc.__name__)
    except AttributeError:
      return NotImplemented
    grid = consistent_grid(*[x for x in inputs if isinstance(x, GridField)])
    arrays = [x.data if isinstance(x, GridField) else x for x in inputs]
    result = func(*arrays)
    if isinstance(result, tuple):
      return tuple(GridField(r, grid) for r in result)
    return GridField(result, grid)


def consistent_grid(*fields: GridField) -> Grid:
  """
  Checks that all fields are defined on the same grid and returns that grid.
  If the grids are not identical, it raises an `InconsistentGridError`.
  """
  grids = {field.grid for field in fields}
  if len(grids) != 1:
    raise InconsistentGridError(f'fields do not have a unique grid: {grids}')
  grid, = grids
  return grid


def applied(func):
  """
  Converts a function on `(H, W)` matrices into one that takes `GridField`s.

  `GridField` arguments are replaced by their matrix views, the function is
  called, and the `(H, W)` result is wrapped back into a `GridField` on the
  (necessarily shared) grid of the inputs.
  """

  def wrapper(*args, **kwargs):
    field_args = [
        arg for arg in args + tuple(kwargs.values())
        if isinstance(arg, GridField)
    ]
    grid = consistent_grid(*field_args)
    raw_args = [arg.matrix if isinstance(arg, GridField) else arg for arg in args]
    raw_kwargs = {
        k: v.matrix if isinstance(v, GridField) else v for k, v in kwargs.items()
    }
    return GridField.from_matrix(func(*raw_args, **raw_kwargs), grid)

  return wrapper


# `grids.where(condition, a, b)` selects between fields cell by cell.
where = applied(jnp.where)
