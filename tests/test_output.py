"""Tests for generated file assembly and writing."""

from __future__ import annotations

from pathlib import Path

from deepcopygen.config import GeneratorConfig
from deepcopygen.emit import EmittedPackage
from deepcopygen.models import Package
from deepcopygen.output import (
    GENERATED_MARKER,
    STATUS_DRY_RUN,
    STATUS_UNCHANGED,
    STATUS_WRITTEN,
    OutputCoordinator,
    is_generated_file,
)

PKG = "example.com/app/config"

BODY = (
    "// DeepCopyInto is an autogenerated deepcopy function, copying the receiver, "
    "writing into out. in must be non-nil.\n"
    "func (in *Sub) DeepCopyInto(out *Sub) {\n"
    "\t*out = *in\n"
    "\treturn\n"
    "}\n"
)


def _emitted(body: str = BODY, imports=()) -> EmittedPackage:
    return EmittedPackage(package=PKG, name="config", types=["Sub"], imports=list(imports), body=body)


def test_render_lays_out_build_tag_header_and_imports(tmp_path: Path) -> None:
    header = tmp_path / "boilerplate.go.txt"
    header.write_text("/*\nCopyright The Authors.\n*/\n", encoding="utf-8")
    coordinator = OutputCoordinator(GeneratorConfig(root=tmp_path, header_file=header))

    text = coordinator.render(_emitted(imports=[("runtime", "k8s.io/apimachinery/pkg/runtime")]))

    assert text == (
        "//go:build !ignore_autogenerated\n"
        "\n"
        "/*\nCopyright The Authors.\n*/\n"
        "\n"
        f"{GENERATED_MARKER}\n"
        "\n"
        "package config\n"
        "\n"
        "import (\n"
        '\truntime "k8s.io/apimachinery/pkg/runtime"\n'
        ")\n"
        "\n" + BODY
    )


def test_render_without_build_tag_or_imports(tmp_path: Path) -> None:
    coordinator = OutputCoordinator(GeneratorConfig(root=tmp_path, build_tag=None))
    text = coordinator.render(_emitted())

    assert text.startswith(f"{GENERATED_MARKER}\n\npackage config\n\n// DeepCopyInto")
    assert "import" not in text


def test_target_path_prefers_package_directory(generator_config: GeneratorConfig) -> None:
    coordinator = OutputCoordinator(generator_config)
    root = generator_config.root

    assert coordinator.target_path(Package(path=PKG, name="config", directory="pkg/config")) == (
        root / "pkg/config/zz_generated.deepcopy.go"
    )
    assert coordinator.target_path(Package(path=PKG, name="config")) == (
        root / "out" / PKG / "zz_generated.deepcopy.go"
    )


def test_write_is_idempotent(generator_config: GeneratorConfig) -> None:
    coordinator = OutputCoordinator(generator_config)
    package = Package(path=PKG, name="config")

    first = coordinator.write(package, _emitted())
    assert first.status == STATUS_WRITTEN
    assert first.path.read_text(encoding="utf-8").endswith(BODY)
    assert "+" + GENERATED_MARKER in first.diff

    second = coordinator.write(package, _emitted())
    assert second.status == STATUS_UNCHANGED
    assert not second.changed
    assert second.diff == ""
    assert [entry.name for entry in first.path.parent.iterdir()] == [first.path.name]


def test_dry_run_reports_diff_without_writing(generator_config: GeneratorConfig) -> None:
    coordinator = OutputCoordinator(generator_config)
    package = Package(path=PKG, name="config")
    written = coordinator.write(package, _emitted())

    changed_body = BODY.replace("\treturn\n", "\t// changed\n\treturn\n")
    result = coordinator.write(package, _emitted(body=changed_body), dry_run=True)

    assert result.status == STATUS_DRY_RUN
    assert "+\t// changed" in result.diff
    assert written.path.read_text(encoding="utf-8").endswith(BODY)


def test_is_generated_file(tmp_path: Path) -> None:
    generated = tmp_path / "zz_generated.deepcopy.go"
    generated.write_text(f"//go:build !ignore_autogenerated\n\n{GENERATED_MARKER}\n\npackage x\n", encoding="utf-8")
    handwritten = tmp_path / "types.go"
    handwritten.write_text("package x\n", encoding="utf-8")

    assert is_generated_file(generated)
    assert is_generated_file(generated, output_file="zz_generated.deepcopy.go")
    assert not is_generated_file(generated, output_file="other.go")
    assert not is_generated_file(handwritten)
    assert not is_generated_file(tmp_path / "missing.go")
