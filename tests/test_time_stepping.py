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
import logging

import jax.numpy as jnp
import numpy as np
import pytest

from jax_smoke.base import advection
from jax_smoke.base import diagnostics
from jax_smoke.base import forcings
from jax_smoke.base import state as state_lib
from jax_smoke.base import time_stepping
from jax_smoke.config import ConfigurationError
from jax_smoke.config import DisplayField
from jax_smoke.config import SimulationConfig

SMALL = SimulationConfig(height=64, width=64)


@pytest.fixture(scope='module')
def default_step():
  """One full step of the default 200x200 setup with the rectangle."""
  simulator = time_stepping.Simulator(SimulationConfig())
  before = simulator.state
  after = simulator.step()
  return before, after


def test_inlet_smoke_after_source_and_advection():
  state = state_lib.initial_state(SimulationConfig())
  dt = 0.5
  u, v = forcings.apply_forces(state.u, state.v, state.force_u, state.force_v,
                               state.mask, dt)
  density = forcings.source_smoke(state.density, state.source, state.mask, dt)
  density = np.asarray(advection.advect(u, v, density, state.mask, dt).matrix)

  # Inside the inlet v = 20, so columns up to 10 backtrace onto the wall.
  assert density[100, 5] == pytest.approx(0.25)
  assert density[100, 15] == pytest.approx(0.5)
  # Outside it v = 2.5 after forcing and the plume edge is smeared.
  assert density[100, 20] == pytest.approx(0.5)
  assert density[100, 21] == pytest.approx(0.125)
  assert np.all(density[:, 22:] == 0.0)
  assert np.all(density[:70] == 0.0)
  assert np.all(density[130:] == 0.0)
  assert np.all(density[70:130, 1:22] > 0.0)


def test_first_step_confines_smoke_near_inlet(default_step):
  _, after = default_step
  density = np.asarray(after.density.matrix)
  assert int(after.step_count) == 1
  assert density[100, 10] > 0.0
  # Twenty diffusion sweeps spread smoke by at most twenty cells.
  assert np.all(density[:, 42:] == 0.0)
  assert np.all(density[:50] == 0.0)
  assert np.all(density[150:] == 0.0)


def test_first_step_without_obstacle_confines_smoke_near_inlet():
  simulator = time_stepping.Simulator(SimulationConfig(obstacle=None))
  assert simulator.mask.count == 0
  after = simulator.step()
  density = np.asarray(after.density.matrix)
  assert int(after.step_count) == 1
  assert not np.any(np.asarray(after.mask.solid))
  assert density[100, 10] > 0.0
  assert np.all(density[:, 42:] == 0.0)
  assert np.all(density[:50] == 0.0)
  assert np.all(density[150:] == 0.0)
  assert diagnostics.check_health(after)


def test_step_preserves_invariants(default_step):
  before, after = default_step
  solid = np.asarray(after.mask.solid)
  assert solid.sum() == 50 * 50
  for name in ('u', 'v', 'pressure', 'density'):
    old = np.asarray(getattr(before, name).matrix)
    new = np.asarray(getattr(after, name).matrix)
    np.testing.assert_array_equal(new[solid], old[solid])
  for name in ('u', 'v', 'density'):
    new = np.asarray(getattr(after, name).matrix)
    ring = ~np.pad(np.ones((198, 198), dtype=bool), 1)
    np.testing.assert_array_equal(new[ring], 0.0)
  assert diagnostics.check_health(after)


def test_step_function_is_pure():
  state = state_lib.initial_state(SMALL)
  step_fn = time_stepping.navier_stokes_smoke_step(SMALL)
  first = step_fn(state)
  second = step_fn(state)
  np.testing.assert_array_equal(first.density.data, second.density.data)
  np.testing.assert_array_equal(state.density.data, 0.0)
  assert int(state.step_count) == 0


def test_simulator_phases():
  simulator = time_stepping.Simulator(SMALL)
  assert simulator.phase is time_stepping.SimulatorPhase.CONFIGURED
  assert simulator.step_count == 0
  assert simulator.mask.count > 0
  simulator.step()
  assert simulator.phase is time_stepping.SimulatorPhase.STEPPING
  simulator.step()
  assert simulator.step_count == 2


def test_configure_obstacle_is_monotonic():
  simulator = time_stepping.Simulator(SMALL.replace(obstacle='diagonal'))
  diagonal = np.asarray(simulator.mask.solid)
  simulator.configure_obstacle('circle')
  combined = np.asarray(simulator.mask.solid)
  assert combined[diagonal].all()
  assert combined.sum() > diagonal.sum()
  count = simulator.mask.count
  simulator.configure_obstacle('circle')
  assert simulator.mask.count == count


def test_step_is_not_reentrant():
  simulator = time_stepping.Simulator(SMALL)
  simulator._step_fns[SMALL.dt] = lambda state: simulator.step()
  with pytest.raises(RuntimeError):
    simulator.step()
  # The guard is released once the failed step unwinds.
  del simulator._step_fns[SMALL.dt]
  simulator.step()
  assert simulator.step_count == 1


def test_step_rejects_bad_dt():
  simulator = time_stepping.Simulator(SMALL)
  with pytest.raises(ConfigurationError):
    simulator.step(dt=0.0)
  with pytest.raises(ConfigurationError):
    simulator.step(dt=float('inf'))
  assert simulator.phase is time_stepping.SimulatorPhase.CONFIGURED


def test_step_with_custom_dt():
  simulator = time_stepping.Simulator(SMALL)
  simulator.step(dt=0.25)
  simulator.step(dt=0.25)
  assert simulator.step_count == 2
  assert set(simulator._step_fns) == {0.25}


def test_run_with_callback():
  simulator = time_stepping.Simulator(SMALL)
  snapshots = []
  final = simulator.run(3, callback=snapshots.append, field='velocity')
  assert [s.step for s in snapshots] == [1, 2, 3]
  assert all(s.field is DisplayField.VELOCITY for s in snapshots)
  assert int(final.step_count) == 3
  with pytest.raises(ValueError):
    simulator.run(-1)


def test_snapshot_defaults_to_configured_field():
  simulator = time_stepping.Simulator(SMALL.replace(display='pressure'))
  simulator.step()
  snapshot = simulator.snapshot()
  assert snapshot.field is DisplayField.PRESSURE
  np.testing.assert_array_equal(
      snapshot.values, np.asarray(simulator.state.pressure.matrix))


def test_health_stays_finite():
  simulator = time_stepping.Simulator(SMALL)
  simulator.run(5)
  report = simulator.health()
  assert report.finite
  assert report.max_density > 0.0


def _poisoned(simulator):
  density = simulator.state.density.set(10, 10, jnp.nan)
  simulator.state = simulator.state.replace(density=density)


def test_nonfinite_step_logs_warning(caplog):
  simulator = time_stepping.Simulator(SMALL)
  _poisoned(simulator)
  with caplog.at_level(logging.WARNING, logger=time_stepping.__name__):
    simulator.step()
  assert 'non-finite' in caplog.text


def test_nonfinite_step_raises_when_configured():
  simulator = time_stepping.Simulator(SMALL.replace(raise_on_nonfinite=True))
  _poisoned(simulator)
  with pytest.raises(diagnostics.NumericalInstabilityError):
    simulator.step()


def test_no_obstacle():
  simulator = time_stepping.Simulator(SMALL.replace(obstacle=None))
  assert simulator.mask.count == 0
  simulator.step()
  assert simulator.mask.count == 0


def test_step_stamps_requested_shape():
  simulator = time_stepping.Simulator(SMALL.replace(obstacle=None))
  simulator.step(shape='diagonal')
  count = simulator.mask.count
  assert count > 0
  simulator.step(shape='diagonal')
  assert simulator.mask.count == count
  assert simulator.step_count == 2
