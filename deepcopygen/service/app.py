"""FastAPI application exposing deepcopy-gen over HTTP."""

from __future__ import annotations

import asyncio
import copy
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..config import ConfigError, GeneratorConfig
from ..errors import ModelError
from ..loader import build_universe
from ..logging import get_logger
from ..orchestrator import GenerationResult, Orchestrator
from ..output import OutputCoordinator

logger = get_logger("service")


class GenerateOptions(BaseModel):
    bounding_packages: List[str] = Field(default_factory=list)
    reflective_clone: Optional[bool] = None
    build_tag: Optional[str] = None
    workers: Optional[int] = None


class GenerateRequest(BaseModel):
    model: Dict[str, Any]
    packages: List[str] = Field(default_factory=list)
    options: GenerateOptions = Field(default_factory=GenerateOptions)


class GeneratedFile(BaseModel):
    package: str
    file_name: str
    types: List[str]
    content: str


class FailureDetail(BaseModel):
    package: str
    kind: str
    message: str


class GenerateResponse(BaseModel):
    status: str
    files: List[GeneratedFile]
    failures: List[FailureDetail]


class HealthResponse(BaseModel):
    status: str


def _default_config() -> GeneratorConfig:
    return GeneratorConfig(root=Path.cwd())


def create_app(
    config_factory: Callable[[], GeneratorConfig] = _default_config,
    orchestrator_factory: Callable[[GeneratorConfig], Orchestrator] = Orchestrator,
) -> FastAPI:
    """Create the FastAPI application exposing generation."""

    app = FastAPI(title="deepcopy-gen service", version="1.0.0")

    async def get_config() -> GeneratorConfig:
        # A fresh copy per request so options never leak between requests.
        return copy.deepcopy(config_factory())

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/generate", response_model=GenerateResponse)
    async def generate(
        payload: GenerateRequest,
        config: GeneratorConfig = Depends(get_config),
    ) -> GenerateResponse:
        _apply_options(config, payload.options)
        universe = build_universe(payload.model)
        orchestrator = orchestrator_factory(config)

        def _run() -> GenerationResult:
            return orchestrator.generate(universe, payload.packages or None)

        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, _run)
        return _to_response(result, OutputCoordinator(config))

    @app.exception_handler(ModelError)
    async def model_error_handler(_: Any, exc: ModelError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(ConfigError)
    async def config_error_handler(_: Any, exc: ConfigError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def _apply_options(config: GeneratorConfig, options: GenerateOptions) -> None:
    if options.bounding_packages:
        config.bounding_packages = list(options.bounding_packages)
    if options.reflective_clone is not None:
        config.reflective_clone.enabled = options.reflective_clone
    if options.build_tag is not None:
        config.build_tag = options.build_tag or None
    if options.workers is not None:
        if options.workers < 1:
            raise ConfigError("workers must be a positive integer")
        config.workers = options.workers


def _to_response(result: GenerationResult, coordinator: OutputCoordinator) -> GenerateResponse:
    files = [
        GeneratedFile(
            package=emitted.package,
            file_name=coordinator.config.output_file,
            types=list(emitted.types),
            content=coordinator.render(emitted),
        )
        for emitted in result.packages
        if not emitted.empty
    ]
    failures = [
        FailureDetail(package=failure.package, kind=failure.error.kind, message=failure.message)
        for failure in result.failures
    ]
    logger.info("Generated %d file(s), %d failure(s)", len(files), len(failures))
    return GenerateResponse(status="ok" if result.ok else "failed", files=files, failures=failures)


def run_service(
    host: str = "127.0.0.1", port: int = 8000, config: GeneratorConfig | None = None
) -> None:  # pragma: no cover - integration path
    base = config or _default_config()
    app = create_app(lambda: base)
    uvicorn.run(app, host=host, port=port)


__all__ = ["create_app", "run_service"]
