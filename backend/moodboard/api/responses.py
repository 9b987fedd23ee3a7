"""Response envelope helpers shared by the API routers.

Every endpoint answers {"success": bool, "data"?: ..., "message"?: ...}.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import HTTPException
from loguru import logger

from ..services.errors import ProcessingFailed, ServiceError


def ok(data: Any = None, message: str | None = None, **extra: Any) -> dict:
    body: dict = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    body.update(extra)
    return body


@contextmanager
def failure_message(message: str) -> Iterator[None]:
    """Turn unexpected errors into a generic ProcessingFailed.

    Service errors and HTTP exceptions pass through untouched; anything else
    is logged with its traceback and reported with `message` only.
    """
    try:
        yield
    except (ServiceError, HTTPException):
        raise
    except Exception:
        logger.exception(message)
        raise ProcessingFailed(message)
