from __future__ import annotations

from pathlib import Path

import pytest

from deepcopygen.config import GeneratorConfig
from tests._fixtures.model_builder import ModelBuilder


@pytest.fixture
def model_builder(tmp_path: Path) -> ModelBuilder:
    """Provide a reusable model builder rooted at the pytest tmp_path."""
    return ModelBuilder(tmp_path)


@pytest.fixture
def generator_config(tmp_path: Path) -> GeneratorConfig:
    """Default configuration writing generated files below tmp_path/out."""
    return GeneratorConfig(root=tmp_path, output_base=tmp_path / "out")
