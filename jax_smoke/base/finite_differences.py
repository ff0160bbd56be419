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
Neighbour stencils on `(H, W)` matrices.

All operators here act on the matrix view of a field and only produce
meaningful values on the interior `1 <= i <= H - 2, 1 <= j <= W - 2`. Values
on the outer ring are padding (the neighbour across the edge is taken to be
zero) and must be masked out by the caller, which every solver stage does
with `ObstacleMask.active()`.

- `shift`: the neighbour matrix `f[i + offset]` along one axis.
- `neighbor_sum`: the 4-point sum used by both Jacobi solvers.
- `central_difference`: `f[i + 1] - f[i - 1]` along one axis, *not* divided
  by the spacing; callers apply their own `0.5 * h` factor.
"""
import jax
import jax.numpy as jnp

from jax_smoke.base import grids

Array = grids.Array


def shift(matrix: Array, offset: int, axis: int) -> jax.Array:
  """
  Returns `s` with `s[..., i, ...] = matrix[..., i + offset, ...]`.

  Positions whose neighbour would fall outside the grid are filled with zero.
  """
  if offset == 0:
    return matrix
  size = matrix.shape[axis]
  pad = [(0, 0)] * matrix.ndim
  pad[axis] = (max(-offset, 0), max(offset, 0))
  padded = jnp.pad(matrix, pad)
  start = max(offset, 0)
  return jax.lax.slice_in_dim(padded, start, start + size, axis=axis)


def neighbor_sum(matrix: Array) -> jax.Array:
  """`f[i+1, j] + f[i-1, j] + f[i, j+1] + f[i, j-1]`."""
  return (shift(matrix, +1, 0) + shift(matrix, -1, 0) +
          shift(matrix, +1, 1) + shift(matrix, -1, 1))


def central_difference(matrix: Array, axis: int) -> jax.Array:
  """`f[i+1] - f[i-1]` along `axis`."""
  return shift(matrix, +1, axis) - shift(matrix, -1, axis)
