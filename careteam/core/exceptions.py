"""RFC 7807 Problem Details error handling."""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from careteam.core.denials import Denial

logger = logging.getLogger(__name__)


class ProblemDetailError(Exception):
    """Raise for RFC 7807 problem+json responses."""

    def __init__(
        self,
        status: int,
        title: str,
        detail: str,
        error_type: str | None = None,
        code: str | None = None,
    ):
        self.status = status
        self.title = title
        self.detail = detail
        self.error_type = error_type or "about:blank"
        self.code = code

    @classmethod
    def from_denial(cls, denial: Denial) -> "ProblemDetailError":
        return cls(
            status=denial.status,
            title=denial.code.replace("_", " ").title(),
            detail=denial.message,
            error_type=f"urn:careteam:denial:{denial.code.lower()}",
            code=denial.code,
        )


def raise_for_denial(result: object) -> None:
    """Raise a ProblemDetailError if ``result`` is a Denial, else do nothing."""
    if isinstance(result, Denial):
        raise ProblemDetailError.from_denial(result)


async def problem_detail_handler(request: Request, exc: ProblemDetailError) -> JSONResponse:
    content = {
        "type": exc.error_type,
        "title": exc.title,
        "status": exc.status,
        "detail": exc.detail,
        "instance": str(request.url.path),
    }
    if exc.code:
        content["code"] = exc.code
    logger.info(
        "Request denied: %s %s -> %s",
        request.method,
        request.url.path,
        exc.code or exc.status,
        extra={"request_id": getattr(request.state, "request_id", None)},
    )
    return JSONResponse(
        status_code=exc.status,
        content=content,
        media_type="application/problem+json",
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "type": "about:blank",
            "title": exc.detail if isinstance(exc.detail, str) else "Error",
            "status": exc.status_code,
            "detail": exc.detail,
            "instance": str(request.url.path),
        },
        media_type="application/problem+json",
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "type": "about:blank",
            "title": "Validation Error",
            "status": 422,
            "detail": jsonable_errors(exc),
            "instance": str(request.url.path),
        },
        media_type="application/problem+json",
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry exception instances that the JSON encoder cannot handle
    errors = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        errors.append(err)
    return errors
