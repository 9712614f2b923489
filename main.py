from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Dict, Literal
import logging
import time

import httpx
from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ValidationError
from starlette.responses import JSONResponse, Response

import config
from helpers.pwned import (
    HashType,
    InvalidPrefixError,
    MalformedResponseError,
    RangeQueryError,
    hash_suffixes,
    is_pwned_password,
)

logger = logging.getLogger(__name__)

START_TS = time.time()


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(config.TIMEOUT_SEC),
        headers={"User-Agent": config.USER_AGENT},
    ) as client:
        app.state.http = client
        yield


app = FastAPI(title="pwncheck API", version=config.APP_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    resp: Response = await call_next(request)
    resp.headers["X-Content-Type-Options"] = "nosniff"
    resp.headers["Referrer-Policy"] = "no-referrer"
    resp.headers["Cache-Control"] = "no-store"
    return resp


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http


# ---------------- Models ----------------
class CheckIn(BaseModel):
    password: str


class CheckOut(BaseModel):
    pwned: bool


class RangeOut(BaseModel):
    prefix: str
    mode: Literal["sha1", "ntlm"]
    count: int
    suffixes: Dict[str, int]


# ---------------- Errors ----------------
@app.exception_handler(InvalidPrefixError)
async def invalid_prefix_handler(request: Request, exc: InvalidPrefixError):
    return JSONResponse({"detail": "Prefix must be exactly 5 hex characters."}, status_code=400)


@app.exception_handler(RangeQueryError)
async def range_query_handler(request: Request, exc: RangeQueryError):
    logger.warning("Pwned Passwords rejected request: status=%s retry_after=%s", exc.status_code, exc.retry_after)
    if exc.rate_limited:
        headers = {}
        if exc.retry_after is not None:
            headers["Retry-After"] = str(int(exc.retry_after.total_seconds()))
        return JSONResponse({"detail": "Rate limited by Pwned Passwords"}, status_code=429, headers=headers)
    return JSONResponse({"detail": f"Pwned Passwords error {exc.status_code}"}, status_code=502)


@app.exception_handler(MalformedResponseError)
async def malformed_handler(request: Request, exc: MalformedResponseError):
    logger.warning("Pwned Passwords sent a malformed body")
    return JSONResponse({"detail": "Malformed upstream response"}, status_code=502)


@app.exception_handler(httpx.TimeoutException)
async def timeout_handler(request: Request, exc: httpx.TimeoutException):
    logger.warning("Pwned Passwords timed out: %s", type(exc).__name__)
    return JSONResponse({"detail": "Upstream timeout"}, status_code=504)


@app.exception_handler(httpx.RequestError)
async def upstream_handler(request: Request, exc: httpx.RequestError):
    logger.warning("Pwned Passwords request failed: %s", exc)
    return JSONResponse({"detail": f"Upstream error: {exc}"}, status_code=502)


# ---------------- Routes ----------------
@app.get("/health")
def health():
    return {
        "status": "ok",
        "service": "pwncheck-api",
        "version": config.APP_VERSION,
        "uptime_sec": round(time.time() - START_TS, 1),
    }


@app.get("/range/{prefix}", response_model=RangeOut)
async def range_lookup(
    prefix: str,
    mode: Literal["sha1", "ntlm"] = Query("sha1"),
    padding: bool = Query(config.ADD_PADDING),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    suffixes = await hash_suffixes(
        prefix,
        HashType(mode),
        padding,
        client=client,
        base_url=config.PWNED_PASSWORDS_API,
        user_agent=config.USER_AGENT,
    )
    return {"prefix": prefix, "mode": mode, "count": len(suffixes), "suffixes": suffixes}


# Accept BOTH JSON and form-encoded bodies for /check
@app.post("/check", response_model=CheckOut)
async def check(request: Request, client: httpx.AsyncClient = Depends(get_http_client)):
    content_type = request.headers.get("content-type", "")
    try:
        if "application/json" in content_type:
            body = CheckIn(**(await request.json()))
        else:
            form = await request.form()
            body = CheckIn(password=form.get("password", ""))
    except (ValidationError, TypeError, ValueError):
        return JSONResponse({"detail": "Body must contain a password string."}, status_code=422)

    pwned = await is_pwned_password(
        body.password,
        client=client,
        base_url=config.PWNED_PASSWORDS_API,
        user_agent=config.USER_AGENT,
    )
    return {"pwned": pwned}
