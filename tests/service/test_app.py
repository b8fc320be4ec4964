"""Tests for the FastAPI service mode."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient

from deepcopygen.config import GeneratorConfig
from deepcopygen.orchestrator import GenerationResult, Orchestrator
from deepcopygen.service import create_app
from tests._fixtures.model_builder import ModelBuilder

PKG = "example.com/app/config"


class _RecordingOrchestrator(Orchestrator):
    """Real orchestrator that remembers the configuration of every request."""

    seen: List[GeneratorConfig] = []

    def generate(self, universe, packages=None) -> GenerationResult:  # type: ignore[override]
        self.seen.append(self.config)
        return super().generate(universe, packages)


@pytest.fixture
def base_config(tmp_path: Path) -> GeneratorConfig:
    return GeneratorConfig(root=tmp_path)


@pytest.fixture
def client(base_config: GeneratorConfig) -> TestClient:
    _RecordingOrchestrator.seen = []
    app = create_app(lambda: base_config, _RecordingOrchestrator)
    return TestClient(app)


def _model(model_builder: ModelBuilder) -> Dict[str, Any]:
    (
        model_builder.package(PKG)
        .struct("Config", {"Name": "string", "Tags": "[]string", "Nested": "*Sub"})
        .struct("Sub", {"Value": "int"})
    )
    return model_builder.to_dict()


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_generate_returns_rendered_files(client: TestClient, model_builder: ModelBuilder, tmp_path: Path) -> None:
    response = client.post("/generate", json={"model": _model(model_builder), "packages": [PKG]})

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["failures"] == []
    [generated] = payload["files"]
    assert generated["package"] == PKG
    assert generated["file_name"] == "zz_generated.deepcopy.go"
    assert generated["types"] == ["Sub", "Config"]
    assert "func (in *Config) DeepCopy() *Config {" in generated["content"]
    assert list(tmp_path.iterdir()) == []


def test_generate_applies_options_per_request(
    client: TestClient, model_builder: ModelBuilder, base_config: GeneratorConfig
) -> None:
    model = _model(model_builder)
    response = client.post(
        "/generate",
        json={"model": model, "options": {"build_tag": "", "workers": 2, "reflective_clone": False}},
    )
    assert response.status_code == 200
    assert not response.json()["files"][0]["content"].startswith("//go:build")

    [config] = _RecordingOrchestrator.seen
    assert config.workers == 2
    assert config.reflective_clone.enabled is False
    assert base_config.workers == 1
    assert base_config.reflective_clone.enabled is True


def test_generate_reports_failures(client: TestClient, model_builder: ModelBuilder) -> None:
    model_builder.package(PKG).struct("Config", {"Events": "chan int"})
    response = client.post("/generate", json={"model": model_builder.to_dict()})

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "failed"
    assert payload["files"] == []
    assert payload["failures"][0]["package"] == PKG
    assert payload["failures"][0]["kind"] == "unresolved"


def test_generate_rejects_malformed_model(client: TestClient) -> None:
    response = client.post("/generate", json={"model": {"packages": [{"types": []}]}})
    assert response.status_code == 422


def test_generate_rejects_invalid_options(client: TestClient, model_builder: ModelBuilder) -> None:
    response = client.post("/generate", json={"model": _model(model_builder), "options": {"workers": 0}})
    assert response.status_code == 400
    assert "workers" in response.json()["detail"]
