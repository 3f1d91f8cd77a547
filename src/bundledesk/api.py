"""FastAPI boundary exposing the bundle operations over JSON."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import pydantic
from fastapi import APIRouter, Body, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from bundledesk.config import BundleDeskConfig, config_from_env
from bundledesk.errors import (
    BundleDeskError,
    ConfigurationError,
    ConnectivityError,
    NotFoundError,
    UnsupportedOperationError,
    ValidationError,
)
from bundledesk.fallback import FallbackReads
from bundledesk.provider import BundleProvider, open_provider
from bundledesk.types import PromoteRequest

logger = logging.getLogger(__name__)

_ERROR_STATUS: tuple[tuple[type[BundleDeskError], int, str], ...] = (
    (ValidationError, 400, "Invalid request"),
    (NotFoundError, 404, "Bundle not found"),
    (UnsupportedOperationError, 501, "Operation not supported by this provider"),
    (ConnectivityError, 503, "Backend unavailable"),
    (ConfigurationError, 500, "Provider misconfigured"),
)

router = APIRouter(prefix="/api", tags=["bundles"])


def get_provider(request: Request) -> BundleProvider:
    return request.app.state.provider


def get_reads(request: Request) -> FallbackReads:
    return request.app.state.reads


def _error_response(status_code: int, error: str, details: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "details": details})


@router.get("/bundles")
def list_bundles(
    limit: int | None = Query(default=None, ge=1),
    reads: FallbackReads = Depends(get_reads),
) -> list[dict[str, Any]]:
    return [b.to_json_dict() for b in reads.list_bundles(limit)]


@router.get("/deployments")
def list_deployments(
    limit: int | None = Query(default=None, ge=1),
    reads: FallbackReads = Depends(get_reads),
) -> list[dict[str, Any]]:
    return [d.to_json_dict() for d in reads.list_deployments(limit)]


@router.get("/stats")
def get_stats(reads: FallbackReads = Depends(get_reads)) -> dict[str, Any]:
    return reads.get_stats().to_json_dict()


@router.post("/bundles/promote")
def promote_bundle(
    body: dict[str, Any] = Body(...),
    provider: BundleProvider = Depends(get_provider),
) -> dict[str, Any]:
    try:
        request = PromoteRequest.model_validate(body)
    except pydantic.ValidationError as e:
        raise ValidationError(
            "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
        ) from e
    promoted_id = provider.promote_bundle(
        request.bundle_id, request.target_channel, move=request.move
    )
    return {"success": True, "id": promoted_id}


@router.patch("/bundles/{bundle_id}")
def update_bundle(
    bundle_id: str,
    body: dict[str, Any] = Body(...),
    provider: BundleProvider = Depends(get_provider),
) -> dict[str, Any]:
    provider.update_bundle(bundle_id, body)
    return {"success": True}


@router.delete("/bundles/{bundle_id}")
def delete_bundle(
    bundle_id: str, provider: BundleProvider = Depends(get_provider)
) -> dict[str, Any]:
    provider.delete_bundle(bundle_id)
    return {"success": True}


@router.post("/rollback/{bundle_id}")
def rollback(bundle_id: str, provider: BundleProvider = Depends(get_provider)) -> dict[str, Any]:
    enabled = provider.rollback(bundle_id)
    return {"success": True, "enabled": enabled, "message": "Rollback completed"}


def create_app(
    provider: BundleProvider | None = None,
    config: BundleDeskConfig | None = None,
) -> FastAPI:
    """Build the application.

    An injected ``provider`` is owned by the caller; otherwise one is opened
    from ``config`` on startup and closed on shutdown.
    """
    cfg = config or config_from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        active = provider if provider is not None else open_provider(cfg)
        logger.info("Serving bundles from provider '%s'.", active.name)
        app.state.provider = active
        app.state.reads = FallbackReads(active, enabled=cfg.read_fallback)
        try:
            yield
        finally:
            if provider is None:
                active.close()

    app = FastAPI(title="bundledesk", lifespan=lifespan)
    app.include_router(router)

    @app.exception_handler(BundleDeskError)
    async def bundledesk_error_handler(request: Request, exc: BundleDeskError) -> JSONResponse:
        for error_type, status_code, title in _ERROR_STATUS:
            if isinstance(exc, error_type):
                break
        else:
            status_code, title = 500, "Internal error"
        if status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return _error_response(status_code, title, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in exc.errors()
        )
        return _error_response(400, "Invalid request", details)

    return app


app = create_app()
