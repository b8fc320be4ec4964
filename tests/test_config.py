"""Tests for deepcopygen.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from deepcopygen.config import (
    DEFAULT_BUILD_TAG,
    DEFAULT_CLONE_FUNCTION,
    DEFAULT_OUTPUT_FILE,
    ConfigError,
    GeneratorConfig,
    load_config,
)


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, GeneratorConfig)
    assert config.root == tmp_path.resolve()
    assert config.output_file == DEFAULT_OUTPUT_FILE
    assert config.output_base is None
    assert config.bounding_packages == []
    assert config.header_file is None
    assert config.build_tag == DEFAULT_BUILD_TAG
    assert config.workers == 1
    assert config.reflective_clone.enabled is True
    assert config.reflective_clone.function == DEFAULT_CLONE_FUNCTION


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".deepcopy-gen.yml"
    config_file.write_text(
        """
output_file: zz_generated.copy.go
output_base: generated
bounding_packages:
  - example.com/app
  - example.com/lib
header_file: hack/boilerplate.go.txt
build_tag: ""
workers: "4"
reflective_clone:
  enabled: "no"
  function: example.com/clone.Any
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.output_file == "zz_generated.copy.go"
    assert config.output_base == tmp_path.resolve() / "generated"
    assert config.bounding_packages == ["example.com/app", "example.com/lib"]
    assert config.header_file == tmp_path.resolve() / "hack/boilerplate.go.txt"
    assert config.build_tag is None
    assert config.workers == 4
    assert config.reflective_clone.enabled is False
    assert config.reflective_clone.function == "example.com/clone.Any"


def test_load_config_accepts_directory_and_empty_file(tmp_path: Path) -> None:
    (tmp_path / ".deepcopy-gen.yml").write_text("\n", encoding="utf-8")
    config = load_config(tmp_path)
    assert config.output_file == DEFAULT_OUTPUT_FILE


@pytest.mark.parametrize(
    "content",
    [
        "- just\n- a list\n",
        "output_file: nested/zz.go\n",
        "workers: 0\n",
        "reflective_clone:\n  function: Copy\n",
        "output_file: [unclosed\n",
    ],
)
def test_load_config_rejects_invalid_settings(tmp_path: Path, content: str) -> None:
    (tmp_path / ".deepcopy-gen.yml").write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_header_text_reads_configured_file(tmp_path: Path) -> None:
    header = tmp_path / "boilerplate.go.txt"
    header.write_text("// Copyright The Authors.\n", encoding="utf-8")

    assert GeneratorConfig(root=tmp_path).header_text() == ""
    assert GeneratorConfig(root=tmp_path, header_file=header).header_text() == "// Copyright The Authors.\n"

    with pytest.raises(ConfigError, match="header file"):
        GeneratorConfig(root=tmp_path, header_file=tmp_path / "missing.txt").header_text()
