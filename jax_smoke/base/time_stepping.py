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
Functions for advancing the smoke simulation forward in time.

The architecture has two layers:

1.  **Step Function Factory**: `navier_stokes_smoke_step` takes a
    `SimulationConfig` and a time step `dt` and returns a new function. That
    function is a pure, jitted map from one `SimulationState` PyTree to the
    next, running the operator-split sequence

        forces -> smoke source -> advection (u, v, density)
               -> diffusion (u, v, density) -> pressure projection

    All three advections backtrace through the same post-force velocity, so
    the order in which they are listed does not matter.

2.  **Simulator**: a small stateful driver that owns the current state, the
    obstacle mask and a cache of compiled step functions. It is what an
    external scheduler calls once per tick, and what a display collaborator
    asks for read-only snapshots.

The simulator has two phases. It is constructed **Configured**, with fields
initialized and the configured obstacle stamped. The first call to `step`
moves it to **Stepping**, where it stays until the caller stops calling.
"""

import enum
import logging
import math
from typing import Callable, Dict, Optional, TypeVar

import jax

from jax_smoke.base import advection
from jax_smoke.base import diagnostics
from jax_smoke.base import diffusion
from jax_smoke.base import forcings
from jax_smoke.base import obstacles
from jax_smoke.base import pressure
from jax_smoke.base import state as state_lib
from jax_smoke.config import ConfigurationError
from jax_smoke.config import SimulationConfig
from jax_smoke.render import display

logger = logging.getLogger(__name__)

# A generic type variable that can represent any JAX PyTree.
PyTreeState = TypeVar("PyTreeState")

# A function that takes a state and returns a new state of the same type.
TimeStepFn = Callable[[PyTreeState], PyTreeState]


def navier_stokes_smoke_step(
    config: SimulationConfig,
    time_step: Optional[float] = None,
) -> TimeStepFn:
  """
  Creates a jitted step function for the smoke simulation.

  Args:
    config: The simulation configuration. Viscosity and the iteration counts
      of both Jacobi solvers are read from it.
    time_step: The time step `dt`; defaults to `config.dt`.

  Returns:
    A `TimeStepFn` that takes a `SimulationState` and returns the state
    advanced by one time step, with `step_count` incremented.
  """
  # pylint: disable=invalid-name
  dt = float(config.dt if time_step is None else time_step)
  viscosity = config.viscosity
  diffusion_iterations = config.diffusion_iterations
  pressure_iterations = config.pressure_iterations

  @jax.named_call
  def external_forces(s):
    u, v = forcings.apply_forces(s.u, s.v, s.force_u, s.force_v, s.mask, dt)
    density = forcings.source_smoke(s.density, s.source, s.mask, dt)
    return s.replace(u=u, v=v, density=density)

  @jax.named_call
  def advect(s):
    return s.replace(
        u=advection.advect(s.u, s.v, s.u, s.mask, dt),
        v=advection.advect(s.u, s.v, s.v, s.mask, dt),
        density=advection.advect(s.u, s.v, s.density, s.mask, dt),
    )

  @jax.named_call
  def diffuse(s):
    D = lambda f: diffusion.diffuse(f, s.mask, viscosity, dt,
                                    diffusion_iterations)
    return s.replace(u=D(s.u), v=D(s.v), density=D(s.density))

  @jax.named_call
  def project(s):
    p, u, v = pressure.project(s.pressure, s.u, s.v, s.mask,
                               pressure_iterations)
    return s.replace(pressure=p, u=u, v=v)

  @jax.jit
  def step_fn(s: state_lib.SimulationState) -> state_lib.SimulationState:
    s = project(diffuse(advect(external_forces(s))))
    return s.replace(step_count=s.step_count + 1)

  return step_fn


class SimulatorPhase(enum.Enum):
  CONFIGURED = 'configured'
  STEPPING = 'stepping'


class Simulator:
  """
  Owns a simulation state and advances it one step at a time.

  Attributes:
    config: The `SimulationConfig` the simulator was built from.
    state: The current `SimulationState`. It is replaced, never mutated, by
      each call to `step`.
    phase: The current `SimulatorPhase`.
  """

  def __init__(self, config: Optional[SimulationConfig] = None):
    self.config = SimulationConfig() if config is None else config
    self.state = state_lib.initial_state(self.config)
    self.phase = SimulatorPhase.CONFIGURED
    self._step_fns: Dict[float, TimeStepFn] = {}
    self._in_step = False
    if self.config.obstacle is not None:
      self.configure_obstacle(self.config.obstacle)

  @property
  def mask(self) -> obstacles.ObstacleMask:
    return self.state.mask

  @property
  def step_count(self) -> int:
    return int(self.state.step_count)

  def configure_obstacle(
      self,
      shape,
      params: Optional[obstacles.ShapeParams] = None,
  ) -> obstacles.ObstacleMask:
    """Stamps an obstacle shape into the mask; existing solid cells are kept."""
    mask = obstacles.stamp(self.state.mask, shape, params)
    self.state = self.state.replace(mask=mask)
    logger.info('configured obstacle %s (%d solid cells)',
                obstacles.ObstacleShape.parse(shape).value, mask.count)
    return mask

  def _step_fn(self, dt: float) -> TimeStepFn:
    if dt not in self._step_fns:
      logger.debug('building step function for dt=%g', dt)
      self._step_fns[dt] = navier_stokes_smoke_step(self.config, dt)
    return self._step_fns[dt]

  def step(
      self,
      dt: Optional[float] = None,
      shape=None,
  ) -> state_lib.SimulationState:
    """
    Advances the simulation by one time step.

    Args:
      dt: The time step; defaults to `config.dt`.
      shape: An obstacle shape to stamp before stepping, as with
        `configure_obstacle`. Stamping is idempotent.

    Returns:
      The new `SimulationState`.

    Raises:
      RuntimeError: if called while another step is in progress.
      ConfigurationError: if `dt` is not a positive finite number.
      NumericalInstabilityError: if the step produced non-finite values and
        `config.raise_on_nonfinite` is set.
    """
    if self._in_step:
      raise RuntimeError('Simulator.step is not re-entrant')
    dt = float(self.config.dt if dt is None else dt)
    if not (math.isfinite(dt) and dt > 0):
      raise ConfigurationError(f'dt must be positive and finite, got {dt}')
    self._in_step = True
    try:
      if shape is not None:
        self.state = self.state.replace(
            mask=obstacles.stamp(self.state.mask, shape))
      self.phase = SimulatorPhase.STEPPING
      self.state = self._step_fn(dt)(self.state)
    finally:
      self._in_step = False
    logger.debug('completed step %d (dt=%g)', self.step_count, dt)
    self._check_health()
    return self.state

  def _check_health(self) -> None:
    if self.config.raise_on_nonfinite:
      diagnostics.assert_finite(self.state)
      return
    report = diagnostics.check_health(self.state)
    if not report:
      logger.warning('non-finite values after step %d: %s',
                     self.step_count, report)

  def health(self) -> diagnostics.HealthReport:
    return diagnostics.check_health(self.state)

  def snapshot(self, field=None) -> display.Snapshot:
    """Returns a read-only snapshot of `field`, or of `config.display`."""
    return display.take_snapshot(
        self.state, self.config.display if field is None else field)

  def run(
      self,
      num_steps: int,
      callback: Optional[Callable[[display.Snapshot], None]] = None,
      field=None,
  ) -> state_lib.SimulationState:
    """
    Steps the simulation `num_steps` times.

    Args:
      num_steps: The number of steps to take.
      callback: Called with a snapshot after every step.
      field: The field passed to `snapshot` for the callback.

    Returns:
      The final `SimulationState`.
    """
    if num_steps < 0:
      raise ValueError(f'num_steps must be non-negative, got {num_steps}')
    for _ in range(num_steps):
      self.step()
      if callback is not None:
        callback(self.snapshot(field))
    return self.state
