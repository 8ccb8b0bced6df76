"""FastAPI application that guards checkout submissions by client IP."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from fastapi import Depends, FastAPI, Form, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from fastapi.templating import Jinja2Templates

from ip_block.admin import REMOVE_LOG_ACTION, TOKEN_ACTIONS, UNBLOCK_ACTION, AdminControl
from ip_block.audit_log import AuditLog
from ip_block.config import get_settings
from ip_block.guard import CheckoutGuard, CheckoutSubmission
from ip_block.logging_config import configure_logging
from ip_block.rate_limit import AttemptCounter
from ip_block.security import (
    ADMIN_TOKEN_HEADER,
    ActionTokens,
    check_admin_credentials,
    check_admin_token,
)
from ip_block.store import KeyValueStore, build_store
from ip_block.utils import from_epoch, resolve_client_ip, to_timezone

configure_logging()
LOGGER = logging.getLogger(__name__)

settings = get_settings()
store = build_store(settings.redis_url)

app = FastAPI(title="Checkout IP Block")
templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
admin_basic = HTTPBasic(auto_error=False, realm="Checkout IP Block")


@app.middleware("http")
async def log_unhandled_errors(request: Request, call_next):  # type: ignore[override]
    client_ip = resolve_client_ip(request.headers, request.client.host if request.client else None)
    try:
        response = await call_next(request)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Unhandled exception", extra={"client_ip": client_ip})
        raise exc
    return response


def get_store() -> KeyValueStore:
    """Provide the process-wide key-value store."""

    return store


def get_counter(kv: KeyValueStore = Depends(get_store)) -> AttemptCounter:
    return AttemptCounter(kv, settings.window_seconds)


def get_audit_log(kv: KeyValueStore = Depends(get_store)) -> AuditLog:
    return AuditLog(kv, key=settings.log_option, limit=settings.log_limit)


def get_guard(
    counter: AttemptCounter = Depends(get_counter),
    audit_log: AuditLog = Depends(get_audit_log),
) -> CheckoutGuard:
    return CheckoutGuard(
        counter,
        audit_log,
        max_attempts=settings.max_attempts,
        window_seconds=settings.window_seconds,
        timezone_name=settings.timezone_name,
    )


def get_admin_control(
    counter: AttemptCounter = Depends(get_counter),
    audit_log: AuditLog = Depends(get_audit_log),
) -> AdminControl:
    return AdminControl(counter, audit_log)


def get_action_tokens(kv: KeyValueStore = Depends(get_store)) -> ActionTokens:
    return ActionTokens(kv, settings.secret_key, settings.nonce_lifetime_seconds)


def has_manage_capability(
    request: Request,
    credentials: Optional[HTTPBasicCredentials] = Depends(admin_basic),
) -> bool:
    """Whether the caller may manage blocks and logs.

    Browsers authenticate with HTTP Basic (the admin token as password);
    scripts may send the token in the ``X-Admin-Token`` header instead.
    """

    if check_admin_token(request.headers.get(ADMIN_TOKEN_HEADER), settings.admin_token):
        return True
    if credentials is None:
        return False
    return check_admin_credentials(
        credentials.username, credentials.password, settings.admin_username, settings.admin_token
    )


@app.post("/checkout")
def checkout(
    request: Request,
    billing_email: str = Form(""),
    guard: CheckoutGuard = Depends(get_guard),
) -> Any:
    """Evaluate one checkout submission."""

    submission = CheckoutSubmission(
        headers=request.headers,
        remote_addr=request.client.host if request.client else None,
        billing_email=billing_email,
        url=str(request.url.path) + (f"?{request.url.query}" if request.url.query else ""),
    )
    decision = guard.evaluate(submission)
    if not decision.allowed:
        return JSONResponse(
            status_code=429,
            content={
                "status": decision.outcome.value,
                "ip": decision.ip,
                "attempts": decision.attempts,
                "notices": [decision.notice],
            },
        )
    return {"status": decision.outcome.value, "ip": decision.ip, "attempts": decision.attempts}


@app.get("/admin/ip-block", response_class=HTMLResponse)
def admin_page(
    request: Request,
    authorized: bool = Depends(has_manage_capability),
    audit_log: AuditLog = Depends(get_audit_log),
    tokens: ActionTokens = Depends(get_action_tokens),
) -> HTMLResponse:
    """Render the blocked-attempt log with unblock and remove controls."""

    if not authorized:
        raise HTTPException(
            status_code=401,
            detail="You are not allowed to access this page.",
            headers={"WWW-Authenticate": 'Basic realm="Checkout IP Block"'},
        )
    entries = audit_log.list()
    return templates.TemplateResponse(
        request,
        "admin.html",
        {
            "entries": entries,
            "max_attempts": settings.max_attempts,
            "block_minutes": settings.block_minutes,
            "unblock_action": UNBLOCK_ACTION,
            "remove_action": REMOVE_LOG_ACTION,
            # One fresh token per form; each token verifies once.
            "unblock_tokens": [tokens.issue(TOKEN_ACTIONS[UNBLOCK_ACTION]) for _ in entries],
            "remove_tokens": [tokens.issue(TOKEN_ACTIONS[REMOVE_LOG_ACTION]) for _ in entries],
            "manual_unblock_token": tokens.issue(TOKEN_ACTIONS[UNBLOCK_ACTION]),
        },
    )


@app.get("/api/ip-block/logs")
def list_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500, alias="pageSize"),
    timezone_name: str = Query("UTC", alias="timezone", description="IANA timezone, e.g. 'America/Sao_Paulo'."),
    authorized: bool = Depends(has_manage_capability),
    audit_log: AuditLog = Depends(get_audit_log),
) -> dict:
    """List blocked attempts, newest first, with pagination."""

    if not authorized:
        raise HTTPException(status_code=403, detail="You are not allowed to access this resource.")

    entries = audit_log.list()
    total = len(entries)
    start = (page - 1) * page_size
    end = start + page_size

    items = []
    for index, entry in enumerate(entries[start:end], start=start):
        item = entry.to_dict()
        item["index"] = index
        item["localTime"] = to_timezone(from_epoch(entry.timestamp), timezone_name)
        items.append(item)

    return {
        "page": page,
        "pageSize": page_size,
        "timezone": timezone_name,
        "total": total,
        "count": len(items),
        "entries": items,
    }


@app.post("/admin/ip-block")
def admin_action(
    ip_block_action: str = Form(""),
    ip_block_nonce: str = Form(""),
    ip: str = Form(""),
    ip_block_remove_logs: str = Form(""),
    log_index: str = Form("-1"),
    authorized: bool = Depends(has_manage_capability),
    admin: AdminControl = Depends(get_admin_control),
    tokens: ActionTokens = Depends(get_action_tokens),
) -> Any:
    """Handle the unblock and remove-log form posts from the admin page."""

    if not authorized:
        LOGGER.warning("ignoring unauthorized admin request", extra={"action": ip_block_action})
        return Response(status_code=204)

    token_action = TOKEN_ACTIONS.get(ip_block_action)
    if token_action is None:
        return {"status": "ignored"}
    if not tokens.verify(token_action, ip_block_nonce):
        raise HTTPException(status_code=403, detail="The link you followed has expired.")

    form = {
        "ip_block_action": ip_block_action,
        "ip": ip,
        "ip_block_remove_logs": ip_block_remove_logs,
        "log_index": log_index,
    }
    notice = admin.dispatch(form, authorized=authorized)
    return {"status": "ok", "notice": notice}
