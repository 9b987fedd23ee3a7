"""Service-level error taxonomy.

Handlers in main.py turn these into the uniform JSON error body
{"success": false, "message": ..., "errors"?: {...}}.
"""
from __future__ import annotations

from typing import Dict, List, Optional


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class ValidationFailed(ServiceError):
    status_code = 422

    @classmethod
    def field(cls, field: str, message: str) -> "ValidationFailed":
        return cls("Validation failed", {field: [message]})


class NotFound(ServiceError):
    status_code = 404


class VersionConflict(ServiceError):
    status_code = 409


class ProcessingFailed(ServiceError):
    status_code = 500


class SaveFailed(ProcessingFailed):
    pass


__all__ = ['ServiceError', 'ValidationFailed', 'NotFound', 'VersionConflict', 'ProcessingFailed', 'SaveFailed']
