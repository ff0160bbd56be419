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
import jax
import jax.numpy as jnp
import numpy as np
import pytest

from jax_smoke.base import diagnostics
from jax_smoke.base import grids
from jax_smoke.base import obstacles
from jax_smoke.base import state as state_lib
from jax_smoke.config import InletConfig
from jax_smoke.config import SimulationConfig


def test_initial_state_default_setup():
  state = state_lib.initial_state(SimulationConfig())
  assert state.grid.shape == (200, 200)
  assert int(state.step_count) == 0
  assert state.mask.count == 0

  v = np.asarray(state.v.matrix)
  source = np.asarray(state.source.matrix)
  force_v = np.asarray(state.force_v.matrix)
  inlet = np.zeros((200, 200), dtype=bool)
  inlet[70:130, 1:20] = True

  np.testing.assert_array_equal(v[inlet], 20.0)
  np.testing.assert_array_equal(v[~inlet], 0.0)
  np.testing.assert_array_equal(source[inlet], 1.0)
  np.testing.assert_array_equal(source[~inlet], 0.0)
  np.testing.assert_array_equal(force_v[inlet], 0.0)
  np.testing.assert_array_equal(force_v[~inlet], 5.0)
  np.testing.assert_array_equal(state.u.data, 0.0)
  np.testing.assert_array_equal(state.force_u.data, 0.0)
  np.testing.assert_array_equal(state.pressure.data, 0.0)
  np.testing.assert_array_equal(state.density.data, 0.0)


def test_initial_state_custom_inlet():
  config = SimulationConfig(
      height=10, width=10,
      inlet=InletConfig(rows=(2, 4), cols=(1, 3), velocity=(1.0, 2.0),
                        source_rate=0.5))
  state = state_lib.initial_state(config)
  assert float(state.u.get(3, 2)) == 1.0
  assert float(state.v.get(3, 2)) == 2.0
  assert float(state.source.get(3, 2)) == 0.5
  assert float(state.source.get(4, 2)) == 0.0


def test_initial_state_rejects_foreign_mask():
  mask = obstacles.ObstacleMask.empty(grids.Grid((5, 5)))
  with pytest.raises(grids.InconsistentGridError):
    state_lib.initial_state(SimulationConfig(height=6, width=6), mask=mask)


def test_state_is_a_pytree():
  state = state_lib.initial_state(SimulationConfig(height=8, width=8))
  leaves = jax.tree_util.tree_leaves(state)
  assert len(leaves) == 9
  doubled = jax.tree_util.tree_map(lambda x: x * 2, state)
  assert isinstance(doubled, state_lib.SimulationState)
  assert doubled.grid == state.grid


def test_speed():
  state = state_lib.initial_state(SimulationConfig(height=5, width=5))
  state = state.replace(u=state.u.fill(3.0), v=state.v.fill(4.0))
  np.testing.assert_allclose(state.speed().data, 5.0)


def test_health_report():
  state = state_lib.initial_state(SimulationConfig())
  report = diagnostics.check_health(state)
  assert report
  assert report.max_speed == pytest.approx(20.0)
  assert report.max_density == 0.0
  assert diagnostics.mean_abs_divergence(state) > 0.0


def test_assert_finite_raises_on_nan():
  state = state_lib.initial_state(SimulationConfig(height=6, width=6))
  state = state.replace(pressure=state.pressure.set(2, 2, jnp.nan))
  assert not diagnostics.check_health(state)
  with pytest.raises(diagnostics.NumericalInstabilityError):
    diagnostics.assert_finite(state)
  assert issubclass(diagnostics.NumericalInstabilityError, FloatingPointError)
