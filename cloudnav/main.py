import logging
from typing import Any, Dict, Optional

import requests
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import PASSWORD_HEADER, password_expired, password_matches
from .categorize import resolve_category
from .config import Settings, get_settings
from .dependencies import get_kv_store
from .kv import KVStore, KVStoreError
from .models import DEFAULT_PASSWORD_EXPIRY_DAYS, AppData, Link, LinkIn, WebDavRequest
from .storage import (
    load_app_data,
    load_config,
    load_favicon,
    load_raw_app_data,
    now_ms,
    save_app_data,
    save_config,
    save_favicon,
    save_raw_app_data,
    touch_last_auth_time,
)
from .webdav import InvalidOperation, perform_operation

logger = logging.getLogger(__name__)

app = FastAPI(title="CloudNav")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": f"Content-Type, {PASSWORD_HEADER}",
}

class RouteAnsweredCORSMiddleware(CORSMiddleware):
    """
    Adds CORS headers to regular responses but hands every OPTIONS request
    to the app, so each route's own preflight handler answers it.
    """

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and scope["method"] == "OPTIONS":
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


app.add_middleware(
    RouteAnsweredCORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", PASSWORD_HEADER],
)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        {"error": exc.detail}, status_code=exc.status_code, headers=exc.headers
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse({"error": "Invalid request body"}, status_code=400)


@app.exception_handler(KVStoreError)
async def kv_error_handler(request: Request, exc: KVStoreError):
    logger.error("KV store unavailable: %s", exc)
    return JSONResponse({"error": str(exc)}, status_code=500)


def _json(raw: str) -> Response:
    return Response(content=raw, media_type="application/json")


def _require_password(request: Request, settings: Settings):
    if not settings.password:
        raise HTTPException(500, "Server misconfigured: PASSWORD not set")
    if not password_matches(request.headers.get(PASSWORD_HEADER), settings.password):
        raise HTTPException(401, "Unauthorized")


async def json_object_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(400, "Invalid JSON body")
    if not isinstance(body, dict):
        raise HTTPException(400, "Invalid JSON body")
    return body


def require_link_password(request: Request, settings: Settings = Depends(get_settings)):
    if not password_matches(request.headers.get(PASSWORD_HEADER), settings.password):
        raise HTTPException(401, "Unauthorized")


def link_body(body: Dict[str, Any] = Depends(json_object_body)) -> LinkIn:
    try:
        return LinkIn.model_validate(body)
    except ValidationError:
        raise HTTPException(400, "Invalid request body")


# ---------------------------------------------------------------------------
# /api/storage
# ---------------------------------------------------------------------------


@app.options("/api/storage")
def storage_preflight():
    return Response(status_code=204, headers=CORS_HEADERS)


@app.get("/api/storage")
def read_storage(
    request: Request,
    check_auth: Optional[str] = Query(default=None, alias="checkAuth"),
    get_config: Optional[str] = Query(default=None, alias="getConfig"),
    domain: Optional[str] = None,
    kv: KVStore = Depends(get_kv_store),
    settings: Settings = Depends(get_settings),
):
    if check_auth == "true":
        has_password = bool(settings.password)
        return {"hasPassword": has_password, "requiresAuth": has_password}

    try:
        if get_config in ("ai", "search"):
            return _json(load_config(kv, get_config) or "{}")

        if get_config == "website":
            stored = load_config(kv, "website")
            if stored:
                return _json(stored)
            return {"passwordExpiryDays": DEFAULT_PASSWORD_EXPIRY_DAYS}

        if get_config == "favicon":
            if not domain:
                raise HTTPException(400, "Domain parameter is required")
            icon = load_favicon(kv, domain)
            return {"icon": icon, "cached": bool(icon)}

        if get_config == "true":
            if not password_matches(request.headers.get(PASSWORD_HEADER), settings.password):
                raise HTTPException(401, "密码错误")
            if password_expired(kv):
                raise HTTPException(401, "密码已过期，请重新输入")
            touch_last_auth_time(kv)

        data = load_raw_app_data(kv)
    except KVStoreError:
        logger.exception("Failed to read storage")
        raise HTTPException(500, "Failed to fetch data")

    if not data:
        return {"links": [], "categories": []}
    return _json(data)


@app.post("/api/storage")
def write_storage(
    request: Request,
    body: Dict[str, Any] = Depends(json_object_body),
    kv: KVStore = Depends(get_kv_store),
    settings: Settings = Depends(get_settings),
):
    provided = request.headers.get(PASSWORD_HEADER)
    save_target = body.get("saveConfig")

    try:
        if body.get("authOnly"):
            _require_password(request, settings)
            touch_last_auth_time(kv)
            return {"success": True}

        if save_target == "search":
            # only gated when a password is configured
            if settings.password and not password_matches(provided, settings.password):
                raise HTTPException(401, "Unauthorized")
            save_config(kv, "search", body.get("config"))
            return {"success": True}

        if save_target == "favicon":
            domain, icon = body.get("domain"), body.get("icon")
            if not domain or not icon:
                raise HTTPException(400, "Domain and icon are required")
            save_favicon(kv, domain, icon)
            return {"success": True}

        _require_password(request, settings)

        if save_target in ("ai", "website"):
            save_config(kv, save_target, body.get("config"))
            return {"success": True}

        try:
            AppData.model_validate(body)
        except ValidationError:
            raise HTTPException(400, "Invalid app data")
        save_raw_app_data(kv, body)
    except KVStoreError:
        logger.exception("Failed to write storage")
        raise HTTPException(500, "Failed to save data")

    return {"success": True}


# ---------------------------------------------------------------------------
# /api/link
# ---------------------------------------------------------------------------


@app.options("/api/link")
def link_preflight():
    return Response(
        status_code=204, headers={**CORS_HEADERS, "Access-Control-Max-Age": "86400"}
    )


@app.post("/api/link", dependencies=[Depends(require_link_password)])
def add_link(
    body: LinkIn = Depends(link_body),
    kv: KVStore = Depends(get_kv_store),
):
    if not body.title or not body.url:
        raise HTTPException(400, "Missing title or url")

    try:
        data = load_app_data(kv)
        category_id, category_name = resolve_category(data.categories, body.category_id)

        created_at = now_ms()
        taken = {str(l.get("id")) for l in data.links}
        candidate = created_at
        while str(candidate) in taken:
            candidate += 1

        link = Link(
            id=str(candidate),
            title=body.title,
            url=body.url,
            description=body.description or "",
            category_id=category_id,
            created_at=created_at,
        )
        link_json: Dict[str, Any] = link.model_dump(by_alias=True, exclude_none=True)
        data.links.insert(0, link_json)
        save_app_data(kv, data)
    except (KVStoreError, ValueError) as exc:
        logger.exception("Failed to add link %s", body.url)
        raise HTTPException(500, str(exc))

    logger.info("Added link %s to category %s", link.id, category_id)
    return {"success": True, "link": link_json, "categoryName": category_name}


# ---------------------------------------------------------------------------
# /api/webdav
# ---------------------------------------------------------------------------


@app.options("/api/webdav")
def webdav_preflight():
    return Response(status_code=204, headers=CORS_HEADERS)


@app.post("/api/webdav")
def webdav_proxy(body: WebDavRequest, settings: Settings = Depends(get_settings)):
    config = body.config
    if not config or not config.url or not config.username or not config.password:
        raise HTTPException(400, "Missing configuration")

    try:
        resp = perform_operation(
            body.operation or "",
            config,
            payload=body.payload,
            filename=body.filename,
            timeout=settings.http_timeout,
        )
    except InvalidOperation:
        raise HTTPException(400, "Invalid operation")
    except requests.RequestException as exc:
        logger.exception("WebDAV %s failed", body.operation)
        raise HTTPException(500, str(exc))

    if body.operation == "download":
        if resp.status_code == 404:
            raise HTTPException(404, "Backup file not found")
        if not resp.ok:
            raise HTTPException(resp.status_code, f"WebDAV Error: {resp.status_code}")
        try:
            return resp.json()
        except ValueError:
            raise HTTPException(500, "Backup file is not valid JSON")

    # resp.ok covers PROPFIND's 207 Multi-Status
    return {"success": resp.ok, "status": resp.status_code}
