"""
Mutating admission webhook server.

Receives AdmissionReview requests from the apiserver on `/mutate`, runs the decision
engine on `request.object` and answers with an AdmissionReview whose response always
allows the pod, optionally carrying a base64 JSON-Patch.
"""

from __future__ import annotations

import base64
import logging
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tzwebhook.config import ServerConfig, WebhookConfig, load_webhook_config
from tzwebhook.core.engine import AdmissionOutcome, AllowedWithError, AllowedWithPatch, DecisionEngine

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "admission.k8s.io/v1"
PATCH_TYPE_JSON_PATCH = "JSONPatch"


class AdmissionRequest(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    uid: str
    kind: Optional[Dict[str, Any]] = None
    namespace: Optional[str] = None
    name: Optional[str] = None
    operation: Optional[str] = None
    user_info: Optional[Dict[str, Any]] = Field(default=None, alias="userInfo")
    object: Optional[Any] = None


class AdmissionReview(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    api_version: str = Field(default=DEFAULT_API_VERSION, alias="apiVersion")
    kind: str = "AdmissionReview"
    request: Optional[AdmissionRequest] = None


app = FastAPI(title="Timezone injector admission webhook")


def get_engine() -> DecisionEngine:
    engine = getattr(app.state, "engine", None)
    if engine is None:
        engine = DecisionEngine(load_webhook_config())
        app.state.engine = engine
    return engine


def _is_json_content_type(value: Optional[str]) -> bool:
    return (value or "").split(";", 1)[0].strip().lower() == "application/json"


def build_admission_response(uid: str, outcome: AdmissionOutcome) -> Dict[str, Any]:
    response: Dict[str, Any] = {"uid": uid, "allowed": True}
    if isinstance(outcome, AllowedWithPatch):
        response["patchType"] = PATCH_TYPE_JSON_PATCH
        response["patch"] = base64.b64encode(outcome.patch).decode("ascii")
    elif isinstance(outcome, AllowedWithError):
        response["status"] = {"message": outcome.message}
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming HTTP requests."""
    start_time = time.time()
    try:
        response = await call_next(request)
        process_time = time.time() - start_time
        logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
        return response
    except Exception as e:
        process_time = time.time() - start_time
        logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
        raise


@app.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"ok": True}


@app.post("/mutate")
async def mutate(request: Request) -> JSONResponse:
    body = await request.body()
    if not body:
        logger.error("empty body")
        raise HTTPException(status_code=400, detail="empty body")

    content_type = request.headers.get("content-type")
    if not _is_json_content_type(content_type):
        logger.error("Content-Type=%s, expect application/json", content_type)
        raise HTTPException(status_code=415, detail="invalid Content-Type, expect `application/json`")

    try:
        review = AdmissionReview.model_validate_json(body)
    except ValidationError as e:
        logger.error("Can't decode body: %s", e)
        raise HTTPException(status_code=400, detail=f"could not decode AdmissionReview: {e}")
    if review.request is None:
        logger.error("AdmissionReview has no request")
        raise HTTPException(status_code=400, detail="AdmissionReview has no request")

    req = review.request
    logger.debug(
        "AdmissionReview for Kind=%s Namespace=%s Name=%s UID=%s Operation=%s UserInfo=%s",
        req.kind,
        req.namespace,
        req.name,
        req.uid,
        req.operation,
        req.user_info,
    )

    outcome = get_engine().decide(req.namespace or "", req.name or "", req.object)
    return JSONResponse(
        status_code=200,
        content={
            "apiVersion": review.api_version,
            "kind": "AdmissionReview",
            "response": build_admission_response(req.uid, outcome),
        },
    )


def run(webhook_config: WebhookConfig, server_config: ServerConfig, host: str = "0.0.0.0") -> None:
    import uvicorn

    log_level = (server_config.log_level or "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # basicConfig is a no-op once main.py configured the root logger; set the package level directly.
    logging.getLogger("tzwebhook").setLevel(getattr(logging, log_level, logging.INFO))

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    app.state.engine = DecisionEngine(webhook_config)

    ssl_kwargs: Dict[str, Any] = {}
    if server_config.cert_file and server_config.key_file:
        ssl_kwargs = {"ssl_certfile": server_config.cert_file, "ssl_keyfile": server_config.key_file}
    else:
        logger.warning("TLS certificate/key not configured, serving plain HTTP")

    logger.info(
        "Webhook server is listening on %s:%d (tz=%s ignored_namespaces=%s log_level=%s)",
        host,
        server_config.port,
        webhook_config.mount.host_path,
        sorted(webhook_config.ignored_namespaces),
        log_level,
    )
    # uvicorn drains in-flight requests on SIGINT/SIGTERM before exiting.
    uvicorn.run(app, host=host, port=server_config.port, log_level=uvicorn_log_level, **ssl_kwargs)
