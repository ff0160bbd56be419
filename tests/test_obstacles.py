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
import numpy as np
import pytest

from jax_smoke.base import grids
from jax_smoke.base import obstacles
from jax_smoke.config import ConfigurationError

GRID = grids.Grid((200, 200))


def _stamped(shape, params=None, grid=GRID):
  return obstacles.stamp(obstacles.ObstacleMask.empty(grid), shape, params)


def test_rectangle_footprint():
  mask = _stamped('rectangle')
  solid = np.asarray(mask.solid)
  assert mask.count == 50 * 50
  assert solid[75:125, 75:125].all()
  assert not solid[74, 100] and not solid[125, 100]
  assert not solid[100, 74] and not solid[100, 125]


def test_disk_footprint():
  mask = _stamped('disk')
  assert mask.is_solid(100, 100)
  assert mask.is_solid(100, 75)
  assert not mask.is_solid(100, 125)
  # The first row offset has a zero half-chord.
  assert not mask.is_solid(75, 100)
  # dy = -24 gives a half-chord of 7.
  assert mask.is_solid(76, 93)
  assert mask.is_solid(76, 106)
  assert not mask.is_solid(76, 107)
  assert not mask.is_solid(76, 92)


def test_circle_alias_matches_disk():
  np.testing.assert_array_equal(
      _stamped('circle').data, _stamped(obstacles.ObstacleShape.DISK).data)


def test_diagonal_footprint():
  mask = _stamped('diagonal')
  # Columns 75..124, row offsets -7..7 from the diagonal.
  assert mask.count == 50 * 15
  assert mask.is_solid(100, 100)
  assert mask.is_solid(107, 100)
  assert not mask.is_solid(108, 100)
  assert mask.is_solid(93, 100)
  assert not mask.is_solid(92, 100)
  assert mask.is_solid(75, 75)
  assert not mask.is_solid(74, 74)
  assert mask.is_solid(131, 124)
  assert not mask.is_solid(125, 125)


def test_diagonal_is_centred_on_the_diagonal():
  solid = np.asarray(_stamped('diagonal').solid)
  rows, cols = np.nonzero(solid)
  offsets = rows - cols
  assert offsets.min() == -7
  assert offsets.max() == 7
  # Every column of the window is covered symmetrically about the diagonal.
  for col in (75, 100, 124):
    column = np.nonzero(solid[:, col])[0]
    assert column.min() == col - 7
    assert column.max() == col + 7


def test_diagonal_thickness_is_perpendicular():
  grid = grids.Grid((100, 100))
  params = obstacles.DiagonalParams(half_length=10, thickness=3)
  cells = obstacles.shape_cells(grid, 'diagonal', params)
  rows, cols = np.nonzero(cells)
  assert np.all(np.abs(rows - cols) * np.sqrt(2) <= 3)
  assert cells.sum() == 20 * 5


@pytest.mark.parametrize('shape', ['rectangle', 'disk', 'diagonal'])
def test_stamping_is_idempotent(shape):
  once = _stamped(shape)
  twice = obstacles.stamp(once, shape)
  np.testing.assert_array_equal(once.data, twice.data)


def test_stamping_is_monotonic():
  rectangle = _stamped('rectangle')
  both = obstacles.stamp(rectangle, 'diagonal')
  solid = np.asarray(both.solid)
  assert solid[np.asarray(rectangle.solid)].all()
  assert solid[np.asarray(_stamped('diagonal').solid)].all()


@pytest.mark.parametrize('shape', ['rectangle', 'disk', 'diagonal'])
def test_shapes_larger_than_grid_are_clipped(shape):
  grid = grids.Grid((12, 16))
  mask = _stamped(shape, grid=grid)
  assert mask.solid.shape == (12, 16)
  assert 0 < mask.count <= grid.size


def test_diagonal_drops_out_of_range_cells():
  grid = grids.Grid((20, 20))
  cells = obstacles.shape_cells(grid, 'diagonal')
  rows, cols = np.nonzero(cells)
  assert cells.sum() > 0
  assert np.all(np.abs(rows - cols) <= 7)


def test_custom_params():
  mask = _stamped('rectangle', obstacles.RectangleParams(2, 3),
                  grid=grids.Grid((10, 10)))
  assert mask.count == 4 * 6


def test_params_must_match_shape():
  with pytest.raises(TypeError):
    obstacles.shape_cells(GRID, 'disk', obstacles.RectangleParams())


def test_unknown_shape():
  with pytest.raises(ConfigurationError):
    _stamped('hexagon')


def test_active_excludes_boundary_and_solids():
  grid = grids.Grid((5, 5))
  solid = np.zeros((5, 5), dtype=bool)
  solid[2, 2] = True
  mask = obstacles.ObstacleMask.from_matrix(solid, grid)
  active = np.asarray(mask.active())
  assert active.sum() == 9 - 1
  assert not active[2, 2]
  assert not active[0].any()


def test_union_requires_same_grid():
  a = obstacles.ObstacleMask.empty(grids.Grid((5, 5)))
  b = obstacles.ObstacleMask.empty(grids.Grid((6, 5)))
  with pytest.raises(grids.InconsistentGridError):
    a.union(b)
