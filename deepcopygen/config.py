"""Configuration loading for deepcopy-gen (.deepcopy-gen.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILE_NAME = ".deepcopy-gen.yml"
DEFAULT_OUTPUT_FILE = "zz_generated.deepcopy.go"
DEFAULT_BUILD_TAG = "ignore_autogenerated"
DEFAULT_CLONE_FUNCTION = "github.com/mohae/deepcopy.Copy"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class ReflectiveCloneConfig:
    """Fallback clone used for types whose structure is not visible."""

    enabled: bool = True
    function: str = DEFAULT_CLONE_FUNCTION


@dataclass
class GeneratorConfig:
    """Represents the settings defined in .deepcopy-gen.yml."""

    root: Path
    output_file: str = DEFAULT_OUTPUT_FILE
    output_base: Optional[Path] = None
    bounding_packages: List[str] = field(default_factory=list)
    header_file: Optional[Path] = None
    build_tag: Optional[str] = DEFAULT_BUILD_TAG
    workers: int = 1
    reflective_clone: ReflectiveCloneConfig = field(default_factory=ReflectiveCloneConfig)

    def header_text(self) -> str:
        """Return the boilerplate header, or an empty string when none is configured."""
        if self.header_file is None:
            return ""
        try:
            return self.header_file.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Failed to read header file {self.header_file}: {exc}") from exc


def load_config(config_path: Path) -> GeneratorConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return GeneratorConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILE_NAME} must contain a mapping at the root")

    config = GeneratorConfig(root=root)

    output_file = _as_str(data.get("output_file"))
    if output_file:
        if "/" in output_file or "\\" in output_file:
            raise ConfigError("output_file must be a bare file name")
        config.output_file = output_file

    output_base = _as_str(data.get("output_base"))
    if output_base:
        config.output_base = root / output_base

    config.bounding_packages = _as_str_list(data.get("bounding_packages"))

    header_file = _as_str(data.get("header_file"))
    if header_file:
        config.header_file = root / header_file

    if "build_tag" in data:
        config.build_tag = _as_str(data.get("build_tag")) or None

    workers = _as_int(data.get("workers"))
    if workers is not None:
        if workers < 1:
            raise ConfigError("workers must be a positive integer")
        config.workers = workers

    clone_data = _as_dict(data.get("reflective_clone"))
    if clone_data:
        enabled = _as_bool(clone_data.get("enabled"))
        if enabled is not None:
            config.reflective_clone.enabled = enabled
        function = _as_str(clone_data.get("function"))
        if function:
            if "." not in function:
                raise ConfigError(
                    "reflective_clone.function must be a qualified Go function (path.Func)"
                )
            config.reflective_clone.function = function

    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILE_NAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CONFIG_FILE_NAME",
    "ConfigError",
    "DEFAULT_BUILD_TAG",
    "DEFAULT_CLONE_FUNCTION",
    "DEFAULT_OUTPUT_FILE",
    "GeneratorConfig",
    "ReflectiveCloneConfig",
    "load_config",
]
