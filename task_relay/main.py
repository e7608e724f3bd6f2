import json
import logging
import time
import uuid
from typing import Any, Dict, Optional, Tuple

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import InvalidSubmission, PayloadTooLarge, SubmissionError
from .records import utc_now_iso
from .schemas import HealthStatus, SubmissionAccepted, SubmissionFailed
from .service import SubmissionService, split_form
from .settings import Settings, get_settings

logger = logging.getLogger("task_relay.api")

GENERIC_FAILURE = "Internal Server Error"
# room for the text fields and multipart framing around the file part
FORM_OVERHEAD_BYTES = 1024 * 1024


def _failure(message: str, status_code: int = 500) -> JSONResponse:
    body = SubmissionFailed(message=message or GENERIC_FAILURE)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _check_content_length(request: Request, limit: int) -> None:
    try:
        declared = int(request.headers.get("content-length", ""))
    except ValueError:
        return
    if declared > limit:
        raise PayloadTooLarge("Request body too large")


async def _read_submission(request: Request, body_limit: int) -> Tuple[Dict[str, Any], Optional[UploadFile]]:
    _check_content_length(request, body_limit)
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = await request.json()
        except json.JSONDecodeError as e:
            raise InvalidSubmission("Malformed JSON body") from e
        if not isinstance(data, dict):
            raise InvalidSubmission("JSON body must be an object")
        return data, None
    # a second file part is still parsed so split_form can reject it by name
    form = await request.form(max_files=2)
    return split_form(form.multi_items())


def create_app(settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="Task Relay Service", version="1.0.0")
    app.state.settings = settings
    app.state.submissions = SubmissionService.from_settings(settings, transport=transport)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "access request_id=%s method=%s path=%s status=%s duration_ms=%.2f",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        request_id = getattr(request.state, "request_id", None)
        logger.exception("unhandled_error request_id=%s", request_id, exc_info=exc)
        response = _failure(GENERIC_FAILURE)
        # ServerErrorMiddleware sits outside request_id_middleware
        if request_id:
            response.headers["X-Request-ID"] = request_id
        return response

    body_limit = settings.max_upload_bytes + FORM_OVERHEAD_BYTES

    @app.post("/api/webhook", response_model=SubmissionAccepted, responses={500: {"model": SubmissionFailed}})
    async def submit_task(request: Request):
        request_id = getattr(request.state, "request_id", None)
        try:
            fields, upload = await _read_submission(request, body_limit)
            receipt = await request.app.state.submissions.submit(fields, upload)
        except SubmissionError as e:
            logger.warning("submission_failed request_id=%s error=%s: %s", request_id, type(e).__name__, e.message)
            return _failure(e.message)
        except StarletteHTTPException as e:
            # malformed multipart bodies surface here from the form parser
            logger.warning("submission_failed request_id=%s error=%s", request_id, e.detail)
            return _failure(str(e.detail))
        except Exception:
            logger.exception("submission_failed request_id=%s", request_id)
            return _failure(GENERIC_FAILURE)

        return SubmissionAccepted(taskId=receipt.task_id)

    @app.get("/api/health", response_model=HealthStatus)
    async def health():
        return HealthStatus(time=utc_now_iso())

    return app
