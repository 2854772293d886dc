"""FastAPI application exposing the proxy endpoints.

Routes:
- POST /api/registerCustomer
- POST /api/submitVatVerification
- POST /.netlify/functions/shopify   (Storefront relay for the web build)

All routes answer OPTIONS with 200 and any other method with 405, and
carry permissive CORS headers since the callers are a webview and a browser.
"""

import json
from typing import Any, Iterator

import requests
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from src.config import Settings, get_settings
from src.logging_config import get_logger
from src.shopify import AdminClient, ShopifyClientError

from .handlers import ProxyError, register_customer, relay_storefront, submit_vat_verification
from .schemas import RegisterCustomerRequest, VatVerificationRequest

logger = get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

OTHER_METHODS = ["GET", "PUT", "PATCH", "DELETE", "HEAD"]

REGISTER_PATH = "/api/registerCustomer"
VAT_PATH = "/api/submitVatVerification"
RELAY_PATH = "/.netlify/functions/shopify"


def reply(status_code: int, content: dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=content, headers=CORS_HEADERS)


def get_admin_client(settings: Settings = Depends(get_settings)) -> Iterator[AdminClient]:
    with AdminClient(settings) as admin:
        yield admin


def get_relay_session() -> Iterator[requests.Session]:
    with requests.Session() as session:
        yield session


async def _read_json(request: Request) -> dict[str, Any]:
    raw = await request.body()
    try:
        body = json.loads(raw or b"{}")
    except ValueError as e:
        raise ProxyError(400, "Invalid JSON body", details=str(e))
    if not isinstance(body, dict):
        raise ProxyError(400, "Invalid JSON body")
    return body


async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Proxy error", extra={"path": request.url.path, "error": exc.message})
    return reply(exc.status_code, {"error": exc.message})


async def shopify_error_handler(request: Request, exc: ShopifyClientError) -> JSONResponse:
    logger.error("Shopify call failed", extra={"path": request.url.path, "error": str(exc)})
    return reply(500, {"error": str(exc) or "Internal server error"})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled proxy error", extra={"path": request.url.path})
    return reply(500, {"error": str(exc) or "Internal server error"})


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the proxy application.

    Args:
        settings: Overrides the environment settings (used in tests).
    """
    app = FastAPI(title="Ace Fixings proxy", docs_url=None, redoc_url=None)

    if settings is not None:
        app.dependency_overrides[get_settings] = lambda: settings

    app.add_exception_handler(ProxyError, proxy_error_handler)
    app.add_exception_handler(ShopifyClientError, shopify_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.options(REGISTER_PATH)
    @app.options(VAT_PATH)
    async def preflight() -> JSONResponse:
        return reply(200, {})

    @app.api_route(REGISTER_PATH, methods=OTHER_METHODS)
    @app.api_route(VAT_PATH, methods=OTHER_METHODS)
    async def method_not_allowed() -> JSONResponse:
        return reply(405, {"error": "Method not allowed"})

    @app.post(REGISTER_PATH)
    async def register_customer_route(
        request: Request,
        admin: AdminClient = Depends(get_admin_client),
        settings: Settings = Depends(get_settings),
    ) -> JSONResponse:
        body = await _read_json(request)
        try:
            payload = RegisterCustomerRequest.model_validate(body)
        except ValidationError as e:
            raise ProxyError(400, "Invalid request body", details=e.errors())
        return reply(200, await run_in_threadpool(register_customer, payload, admin, settings))

    @app.post(VAT_PATH)
    async def submit_vat_verification_route(
        request: Request,
        admin: AdminClient = Depends(get_admin_client),
        settings: Settings = Depends(get_settings),
    ) -> JSONResponse:
        body = await _read_json(request)
        try:
            payload = VatVerificationRequest.model_validate(body)
        except ValidationError as e:
            raise ProxyError(400, "Invalid request body", details=e.errors())
        result = await run_in_threadpool(submit_vat_verification, payload, admin, settings)
        return reply(200, result)

    @app.options(RELAY_PATH)
    async def relay_preflight() -> JSONResponse:
        return reply(200, {"ok": True})

    @app.api_route(RELAY_PATH, methods=OTHER_METHODS)
    async def relay_method_not_allowed() -> JSONResponse:
        return reply(405, {"ok": False, "error": "Use POST"})

    @app.post(RELAY_PATH)
    async def relay_route(
        request: Request,
        session: requests.Session = Depends(get_relay_session),
        settings: Settings = Depends(get_settings),
    ) -> JSONResponse:
        raw = await request.body()
        try:
            status_code, content = await run_in_threadpool(
                relay_storefront, raw, settings, session
            )
        except ProxyError as e:
            content = {"ok": False, "error": e.message}
            if e.details is not None:
                content["details"] = e.details
            return reply(e.status_code, content)
        except requests.exceptions.RequestException as e:
            logger.error("Storefront relay failed", extra={"error": str(e)})
            return reply(500, {"ok": False, "error": str(e)})
        return reply(status_code, content)

    return app


app = create_app()
