"""FastAPI application entrypoint for docsync service mode."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

try:  # pragma: no cover - optional dependency
    from fastapi import Depends, FastAPI, Query
    from fastapi.responses import JSONResponse
    from pydantic import BaseModel

    _FASTAPI_AVAILABLE = True
except ModuleNotFoundError:  # pragma: no cover - service mode optional
    FastAPI = None  # type: ignore[assignment]
    Depends = None  # type: ignore[assignment]
    Query = None  # type: ignore[assignment]
    JSONResponse = None  # type: ignore[assignment]
    BaseModel = object  # type: ignore[assignment]
    _FASTAPI_AVAILABLE = False

from ..report import SyncReport
from ..synchronizer import PartStatus, Synchronizer


class SyncRequest(BaseModel):
    path: str
    categories: Optional[List[str]] = None
    size_budget: Optional[int] = None
    revision: Optional[str] = None
    dry_run: bool = False


class PartOutcomeModel(BaseModel):
    category: str
    part: str
    status: str
    revision: Optional[str] = None
    reason: Optional[str] = None


class SyncResponse(BaseModel):
    ok: bool
    revision: str
    dry_run: bool
    parts: List[PartOutcomeModel]
    warnings: List[str] = []
    extraction_errors: List[str] = []
    diffs: Dict[str, str] = {}


class PartStatusModel(BaseModel):
    category: str
    part: str
    revision: Optional[str] = None
    indexed_revision: Optional[str] = None
    entities: Optional[int] = None


class StatusResponse(BaseModel):
    parts: List[PartStatusModel]


class HealthResponse(BaseModel):
    status: str


def _default_synchronizer() -> Synchronizer:
    return Synchronizer()


def _to_response(report: SyncReport) -> SyncResponse:
    return SyncResponse(
        ok=report.ok,
        revision=report.revision,
        dry_run=report.dry_run,
        parts=[
            PartOutcomeModel(
                category=outcome.category,
                part=outcome.part,
                status=outcome.status,
                revision=outcome.revision,
                reason=outcome.reason,
            )
            for outcome in report.parts
        ],
        warnings=list(report.warnings),
        extraction_errors=list(report.extraction_errors),
        diffs=dict(report.diffs),
    )


def create_app(
    synchronizer_factory: Callable[[], Synchronizer] = _default_synchronizer,
) -> FastAPI:
    """Create the FastAPI application exposing docsync operations."""

    if not _FASTAPI_AVAILABLE:  # pragma: no cover - validated via unit tests
        raise RuntimeError(
            "FastAPI is required for service mode. Install it with `pip install fastapi uvicorn`."
        )

    app = FastAPI(title="DocSync Service", version="1.0.0")

    async def get_synchronizer() -> Synchronizer:
        # Lazy-instantiate per request to keep state predictable.
        return synchronizer_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/sync", response_model=SyncResponse)
    async def sync_repo(
        payload: SyncRequest,
        synchronizer: Synchronizer = Depends(get_synchronizer),
    ) -> SyncResponse:
        def _run_sync() -> SyncReport:
            return synchronizer.synchronize(
                payload.path,
                categories=payload.categories,
                size_budget=payload.size_budget,
                revision=payload.revision,
                dry_run=payload.dry_run,
            )

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:  # pragma: no cover
            report = _run_sync()
        else:
            report = await loop.run_in_executor(None, _run_sync)
        return _to_response(report)

    @app.get("/status", response_model=StatusResponse)
    async def status(
        path: str = Query(...),
        synchronizer: Synchronizer = Depends(get_synchronizer),
    ) -> StatusResponse:
        def _run_status() -> List[PartStatus]:
            return synchronizer.status(path)

        loop = asyncio.get_running_loop()
        rows = await loop.run_in_executor(None, _run_status)
        return StatusResponse(
            parts=[
                PartStatusModel(
                    category=row.category,
                    part=row.part,
                    revision=row.revision,
                    indexed_revision=row.indexed_revision,
                    entities=row.entities,
                )
                for row in rows
            ]
        )

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(
        _: Any, exc: FileNotFoundError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(_: Any, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(
    host: str = "0.0.0.0", port: int = 8000
) -> None:  # pragma: no cover - integration path
    if not _FASTAPI_AVAILABLE:
        raise RuntimeError(
            "FastAPI is required for service mode. Install it with `pip install fastapi uvicorn`."
        )

    try:
        import uvicorn
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "uvicorn is required to run the service. Install it with `pip install uvicorn`."
        ) from exc

    app = create_app()
    uvicorn.run(app, host=host, port=port)
