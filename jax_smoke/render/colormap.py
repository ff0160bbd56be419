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
The five-point "jet" colormap used to display scalar fields.

A normalized value in `[0, 1]` is mapped to RGB by linear interpolation
between the control points

    0.00 blue   (0, 0, 255)
    0.35 cyan   (0, 255, 255)
    0.50 green  (0, 255, 0)
    0.65 yellow (255, 255, 0)
    1.00 red    (255, 0, 0)

Each interpolated channel is floored to an integer. A value lying exactly on
an interior control point is assigned to the lower of the two segments that
meet there; since the map is continuous both segments give the same colour.
Values outside `[0, 1]` are clamped and NaN maps to the zero point.
"""
from typing import Tuple

import numpy as np

RGB = Tuple[int, int, int]

JET_POSITIONS = (0.0, 0.35, 0.5, 0.65, 1.0)
JET_COLORS = (
    (0, 0, 255),
    (0, 255, 255),
    (0, 255, 0),
    (255, 255, 0),
    (255, 0, 0),
)


def _sanitize(value: float) -> float:
    if not np.isfinite(value):
        # +inf is "more than the maximum"; NaN and -inf carry no signal.
        return 1.0 if value == np.inf else 0.0
    return min(max(float(value), 0.0), 1.0)


def interpolate_color(t: float, color1: RGB, color2: RGB) -> RGB:
    """Linearly blends two colours, flooring each channel."""
    return tuple(int(np.floor(c1 + t * (c2 - c1))) for c1, c2 in zip(color1, color2))


def get_color(normalized: float) -> RGB:
    """Maps one normalized value to an `(r, g, b)` tuple of ints."""
    value = _sanitize(normalized)
    for lower in range(len(JET_POSITIONS) - 1):
        start, stop = JET_POSITIONS[lower], JET_POSITIONS[lower + 1]
        if start <= value <= stop:
            t = min((value - start) / (stop - start), 1.0)
            return interpolate_color(t, JET_COLORS[lower], JET_COLORS[lower + 1])
    return JET_COLORS[-1]


def apply_colormap(normalized) -> np.ndarray:
    """Vectorized `get_color`.

    Args:
        normalized: An array of normalized values of any shape.

    Returns:
        A `uint8` array with a trailing RGB axis of length 3.
    """
    values = np.asarray(normalized, dtype=np.float64)
    values = np.where(np.isnan(values), 0.0, values)
    values = np.clip(values, 0.0, 1.0)
    colors = np.asarray(JET_COLORS, dtype=np.float64)
    channels = [np.floor(np.interp(values, JET_POSITIONS, colors[:, c]))
                for c in range(3)]
    return np.stack(channels, axis=-1).astype(np.uint8)
