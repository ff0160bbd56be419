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
"""Shared pytest configuration and fixtures."""
import jax
import pytest

# Small differences between iterates are only observable in double precision.
jax.config.update("jax_enable_x64", True)

from jax_smoke.base import grids  # pylint: disable=g-import-not-at-top


@pytest.fixture
def small_grid():
  return grids.Grid((8, 10))
