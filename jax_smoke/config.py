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
Configuration objects for the smoke simulation.

The solver itself only consumes plain numbers and arrays; everything a caller
can choose (grid size, time step, viscosity, the inlet band, which obstacle to
stamp and which field to display) is gathered here in immutable dataclasses
that validate themselves on construction.

Two choices are closed enumerations rather than free-form strings:

- `ObstacleShape`: the solid geometry stamped into the obstacle mask.
- `DisplayField`: the scalar field handed to the rendering collaborator.

Parsing a string that names neither member raises `ConfigurationError` instead
of silently falling back to some default field.
"""
import dataclasses
import enum
import math
from typing import Any, Mapping, Optional, Tuple


class ConfigurationError(ValueError):
  """Raised when a simulation option is unknown or out of range."""


class ObstacleShape(enum.Enum):
  """The solid shapes that can be stamped at the centre of the grid."""
  RECTANGLE = 'rectangle'
  DISK = 'disk'
  DIAGONAL = 'diagonal'

  @classmethod
  def parse(cls, value: Any) -> 'ObstacleShape':
    """Converts a user-facing name (e.g. a UI radio value) into a shape."""
    if isinstance(value, cls):
      return value
    name = str(value).strip().lower()
    # UI labels for the same shapes.
    name = _SHAPE_ALIASES.get(name, name)
    try:
      return cls(name)
    except ValueError:
      raise ConfigurationError(
          f'unknown obstacle shape {value!r}; expected one of '
          f'{sorted(m.value for m in cls)}') from None


_SHAPE_ALIASES = {'circle': 'disk', 'square': 'rectangle'}


class DisplayField(enum.Enum):
  """The scalar field shown by the display collaborator."""
  VELOCITY = 'velocity'
  PRESSURE = 'pressure'
  SMOKE = 'smoke'

  @classmethod
  def parse(cls, value: Any) -> 'DisplayField':
    if isinstance(value, cls):
      return value
    name = str(value).strip().lower()
    try:
      return cls(name)
    except ValueError:
      raise ConfigurationError(
          f'unknown display field {value!r}; expected one of '
          f'{sorted(m.value for m in cls)}') from None


Range = Tuple[int, int]


@dataclasses.dataclass(frozen=True)
class InletConfig:
  """
  The band of cells through which smoke and momentum enter the domain.

  Attributes:
    rows: Half-open `(start, stop)` row range. `None` selects the 60-row band
      centred on the grid, `[H/2 - 30, H/2 + 30)`, clamped to the interior.
    cols: Half-open `(start, stop)` column range. `None` selects `[1, W/10)`.
    velocity: The `(u, v)` velocity the band is initialised with.
    source_rate: Smoke injection rate inside the band.
  """
  rows: Optional[Range] = None
  cols: Optional[Range] = None
  velocity: Tuple[float, float] = (0.0, 20.0)
  source_rate: float = 1.0

  def resolve(self, height: int, width: int) -> Tuple[Range, Range]:
    """Returns the concrete `(rows, cols)` ranges for a grid of this size."""
    rows = self.rows
    if rows is None:
      rows = (max(height // 2 - 30, 1), min(height // 2 + 30, height - 1))
    cols = self.cols
    if cols is None:
      cols = (1, max(width // 10, 1))
    for name, (start, stop), size in (('rows', rows, height),
                                      ('cols', cols, width)):
      if not 0 <= start <= stop <= size:
        raise ConfigurationError(
            f'inlet {name} {(start, stop)} fall outside a grid of size {size}')
    return tuple(rows), tuple(cols)


@dataclasses.dataclass(frozen=True)
class SimulationConfig:
  """
  All tunable parameters of a smoke simulation.

  The defaults describe a 200x200 grid stepped with `dt = 0.5`, viscosity
  `0.01`, 20 Jacobi iterations for both the diffusion and the pressure solves,
  and a uniform body force of 5 along the column direction everywhere outside
  the inlet.
  """
  height: int = 200
  width: int = 200
  dt: float = 0.5
  viscosity: float = 0.01
  diffusion_iterations: int = 20
  pressure_iterations: int = 20
  default_force: Tuple[float, float] = (0.0, 5.0)
  inlet: InletConfig = dataclasses.field(default_factory=InletConfig)
  obstacle: Optional[ObstacleShape] = ObstacleShape.RECTANGLE
  display: DisplayField = DisplayField.SMOKE
  raise_on_nonfinite: bool = False

  def __post_init__(self):
    # Enumerations may be given as strings; normalise them in place.
    if (isinstance(self.obstacle, str) and
        self.obstacle.strip().lower() == 'none'):
      object.__setattr__(self, 'obstacle', None)
    if self.obstacle is not None:
      object.__setattr__(self, 'obstacle', ObstacleShape.parse(self.obstacle))
    object.__setattr__(self, 'display', DisplayField.parse(self.display))
    if self.height < 3 or self.width < 3:
      raise ConfigurationError(
          f'grid must be at least 3x3 to have an interior, got '
          f'{self.height}x{self.width}')
    if not (math.isfinite(self.dt) and self.dt > 0):
      raise ConfigurationError(f'dt must be positive and finite, got {self.dt}')
    if not (math.isfinite(self.viscosity) and self.viscosity >= 0):
      raise ConfigurationError(
          f'viscosity must be non-negative, got {self.viscosity}')
    for name in ('diffusion_iterations', 'pressure_iterations'):
      if getattr(self, name) < 0:
        raise ConfigurationError(f'{name} must be non-negative')
    if len(self.default_force) != 2:
      raise ConfigurationError('default_force must be a (u, v) pair')
    # Fails early if the inlet does not fit on the grid.
    self.inlet.resolve(self.height, self.width)

  @property
  def shape(self) -> Tuple[int, int]:
    return (self.height, self.width)

  def replace(self, **changes) -> 'SimulationConfig':
    return dataclasses.replace(self, **changes)

  @classmethod
  def from_mapping(cls, options: Mapping[str, Any]) -> 'SimulationConfig':
    """
    Builds a config from plain values, e.g. UI selections or parsed JSON.

    Nested inlet options are given under the `inlet` key as another mapping.
    Unknown keys are rejected.

    Raises:
      ConfigurationError: if a key is unknown or a value is invalid.
    """
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = set(options) - known
    if unknown:
      raise ConfigurationError(f'unknown configuration keys: {sorted(unknown)}')
    kwargs = dict(options)
    inlet = kwargs.get('inlet')
    if isinstance(inlet, Mapping):
      inlet_known = {f.name for f in dataclasses.fields(InletConfig)}
      bad = set(inlet) - inlet_known
      if bad:
        raise ConfigurationError(f'unknown inlet keys: {sorted(bad)}')
      kwargs['inlet'] = InletConfig(**{
          k: tuple(v) if isinstance(v, list) else v for k, v in inlet.items()})
    for key in ('default_force',):
      if isinstance(kwargs.get(key), list):
        kwargs[key] = tuple(kwargs[key])
    try:
      return cls(**kwargs)
    except TypeError as e:
      raise ConfigurationError(str(e)) from e
