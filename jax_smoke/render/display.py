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
Read-only snapshots of a simulation state and their conversion to RGB frames.

The solver hands the outside world a `Snapshot`: one scalar field (velocity
magnitude, pressure or smoke density) plus the obstacle mask, both as NumPy
arrays flagged read-only so a consumer cannot alter the state it came from.

`render_frame` turns a snapshot into an `(H, W, 3)` `uint8` image:

1.  The field is divided by its maximum over the whole grid. Only interior
    cells are normalized; the outer ring is drawn at the colormap's zero point.
2.  If that maximum is zero, negative or not finite there is no usable signal
    and every cell is drawn at the zero point.
3.  Normalized values go through the jet colormap and solid cells are painted
    black.
"""
import dataclasses
import logging

import numpy as np

from jax_smoke.base import grids
from jax_smoke.base import state as state_lib
from jax_smoke.config import DisplayField
from jax_smoke.render import colormap

logger = logging.getLogger(__name__)

OBSTACLE_COLOR = (0, 0, 0)


@dataclasses.dataclass(frozen=True)
class Snapshot:
    """One displayable field of the simulation at a given step.

    Attributes:
        field: Which quantity `values` holds.
        values: `(H, W)` read-only array of the field.
        mask: `(H, W)` read-only boolean obstacle mask.
        step: The step count of the state the snapshot was taken from.
    """
    field: DisplayField
    values: np.ndarray
    mask: np.ndarray
    step: int


def _read_only(array) -> np.ndarray:
    array = np.array(array, copy=True)
    array.setflags(write=False)
    return array


def field_values(state: state_lib.SimulationState, field) -> grids.GridField:
    """Selects the scalar field to display; velocity is shown as its magnitude."""
    field = DisplayField.parse(field)
    if field is DisplayField.VELOCITY:
        return state.speed()
    if field is DisplayField.PRESSURE:
        return state.pressure
    return state.density


def take_snapshot(state: state_lib.SimulationState, field) -> Snapshot:
    field = DisplayField.parse(field)
    return Snapshot(
        field=field,
        values=_read_only(field_values(state, field).matrix),
        mask=_read_only(state.mask.solid),
        step=int(state.step_count),
    )


def normalize(values: np.ndarray) -> np.ndarray:
    """Scales interior values by the grid maximum; see the module docstring."""
    values = np.asarray(values, dtype=np.float64)
    normalized = np.zeros_like(values)
    # The maximum starts from zero, so an all-negative field has no signal.
    max_value = max(float(np.max(values, initial=0.0)), 0.0)
    if not np.isfinite(max_value) or max_value <= 0.0:
        logger.debug('no displayable signal (max=%r)', max_value)
        return normalized
    normalized[1:-1, 1:-1] = values[1:-1, 1:-1] / max_value
    return normalized


def render_frame(snapshot: Snapshot) -> np.ndarray:
    """Converts a snapshot to an `(H, W, 3)` `uint8` RGB image."""
    frame = colormap.apply_colormap(normalize(snapshot.values))
    frame[snapshot.mask] = OBSTACLE_COLOR
    return frame
