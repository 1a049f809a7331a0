"""
Domain errors raised by the service layer.

Each carries the HTTP status the API should answer with; main.py registers a
single handler that renders them as {"detail": message}.
"""
from __future__ import annotations


class ServiceError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(ServiceError):
    status_code = 400


class NotFound(ServiceError):
    status_code = 404


class PermissionDenied(ServiceError):
    status_code = 403


class PaymentRequired(ServiceError):
    status_code = 402


class LimitReached(ServiceError):
    status_code = 402


class IllegalTransition(ServiceError):
    status_code = 409


class StageConflict(ServiceError):
    status_code = 409
