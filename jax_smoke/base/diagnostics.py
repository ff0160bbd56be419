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
Run-time health checks for a simulation state.

Forcing and smoke sourcing accumulate without bound, so a long run with
unbalanced sources can overflow to `inf` and then `nan`. These helpers give
the caller an explicit, cheap report instead of letting the failure surface
later as a blank or garbled frame.
"""
import dataclasses

import jax.numpy as jnp

from jax_smoke.base import pressure
from jax_smoke.base import state as state_lib


class NumericalInstabilityError(FloatingPointError):
  """Raised when a step produces non-finite field values."""


@dataclasses.dataclass(frozen=True)
class HealthReport:
  """Summary of a state's numerical health.

  Attributes:
    finite: True when every velocity, pressure and density value is finite.
    max_speed: Largest velocity magnitude.
    max_density: Largest smoke density.
    max_abs_pressure: Largest absolute pressure.
  """
  finite: bool
  max_speed: float
  max_density: float
  max_abs_pressure: float

  def __bool__(self) -> bool:
    return self.finite


def check_health(state: state_lib.SimulationState) -> HealthReport:
  fields = (state.u, state.v, state.pressure, state.density)
  finite = all(bool(jnp.all(jnp.isfinite(f.data))) for f in fields)
  return HealthReport(
      finite=finite,
      max_speed=float(jnp.max(state.speed().data)),
      max_density=float(jnp.max(state.density.data)),
      max_abs_pressure=float(jnp.max(jnp.abs(state.pressure.data))),
  )


def mean_abs_divergence(state: state_lib.SimulationState) -> float:
  """Mean absolute divergence over the interior fluid cells."""
  div = pressure.divergence(state.u, state.v, state.mask)
  active = state.mask.active()
  count = jnp.maximum(jnp.sum(active), 1)
  return float(jnp.sum(jnp.abs(div.matrix)) / count)


def assert_finite(state: state_lib.SimulationState) -> HealthReport:
  """Raises `NumericalInstabilityError` unless the state is finite."""
  report = check_health(state)
  if not report.finite:
    raise NumericalInstabilityError(
        f'non-finite values after step {int(state.step_count)}: {report}')
  return report
