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
The simulation state aggregate.

All grids the solver reads and writes are bundled into one `SimulationState`
object. It is registered as a JAX PyTree, which is what allows the whole state
to be passed into and out of a jitted step function: the solver never touches
module-level globals, and every stage receives the fields it needs explicitly.
"""
import dataclasses
from typing import Any, Optional

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

from jax_smoke.base import grids
from jax_smoke.base import obstacles
from jax_smoke.config import SimulationConfig

GridField = grids.GridField
ObstacleMask = obstacles.ObstacleMask


@register_pytree_node_class
@dataclasses.dataclass
class SimulationState:
  """
  The complete state of the smoke simulation at one point in time.

  Attributes:
    u: Row-direction velocity.
    v: Column-direction velocity.
    pressure: The pressure field, carried between steps as the initial guess
      of the next Poisson solve.
    density: Smoke concentration.
    source: Smoke injection rate per cell.
    force_u: Row-direction body force per cell.
    force_v: Column-direction body force per cell.
    mask: The obstacle mask.
    step_count: The number of completed steps.
  """
  u: GridField
  v: GridField
  pressure: GridField
  density: GridField
  source: GridField
  force_u: GridField
  force_v: GridField
  mask: ObstacleMask
  step_count: Any = 0

  def tree_flatten(self):
    children = (self.u, self.v, self.pressure, self.density, self.source,
                self.force_u, self.force_v, self.mask, self.step_count)
    return children, None

  @classmethod
  def tree_unflatten(cls, aux_data, children):
    return cls(*children)

  @property
  def grid(self) -> grids.Grid:
    return grids.consistent_grid(self.u, self.v, self.pressure, self.density,
                                 self.source, self.force_u, self.force_v)

  def replace(self, **changes) -> 'SimulationState':
    return dataclasses.replace(self, **changes)

  def speed(self) -> GridField:
    """The velocity magnitude `sqrt(u**2 + v**2)` of every cell."""
    return (self.u * self.u + self.v * self.v) ** 0.5


def initial_state(
    config: SimulationConfig,
    mask: Optional[ObstacleMask] = None,
    dtype: Optional[Any] = None,
) -> SimulationState:
  """
  Allocates every field of a new simulation.

  Velocity, pressure, density and source start at zero and the body force is
  `config.default_force` everywhere. Inside the inlet band the velocity is
  set to `config.inlet.velocity`, the source to `config.inlet.source_rate` and
  the force to zero.

  Args:
    config: The simulation configuration.
    mask: An obstacle mask to start from; empty by default.
    dtype: Floating point type of the fields. Defaults to JAX's default
      float type (float64 when `jax_enable_x64` is set).

  Returns:
    A `SimulationState` at step zero.
  """
  grid = grids.Grid(config.shape)
  if dtype is None:
    dtype = jnp.zeros(()).dtype
  (row_start, row_stop), (col_start, col_stop) = config.inlet.resolve(
      config.height, config.width)
  rows, cols = grid.indices()
  inlet = ((rows >= row_start) & (rows < row_stop) &
           (cols >= col_start) & (cols < col_stop))

  def field(outside: float, inside: float) -> GridField:
    values = jnp.where(inlet, inside, outside).astype(dtype)
    return GridField.from_matrix(values, grid)

  inlet_u, inlet_v = config.inlet.velocity
  force_u, force_v = config.default_force
  if mask is None:
    mask = ObstacleMask.empty(grid)
  elif mask.grid != grid:
    raise grids.InconsistentGridError(
        f'mask grid {mask.grid.shape} does not match config {grid.shape}')
  return SimulationState(
      u=field(0.0, inlet_u),
      v=field(0.0, inlet_v),
      pressure=GridField.zeros(grid, dtype),
      density=GridField.zeros(grid, dtype),
      source=field(0.0, config.inlet.source_rate),
      force_u=field(force_u, 0.0),
      force_v=field(force_v, 0.0),
      mask=mask,
      step_count=jnp.asarray(0, dtype=jnp.int32),
  )
