# Overview: Error taxonomy shared by services and routes.

from __future__ import annotations


class ServiceError(Exception):
    """Base class for errors a client can act on."""

    status_code = 500

    def __init__(self, message: str, errors: list[dict] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class ValidationError(ServiceError, ValueError):
    """400-level input problem (bad field, tender mismatch, missing value)."""

    status_code = 400


class NotFoundError(ServiceError):
    """404: entity absent, soft-deleted, or owned by another company."""

    status_code = 404


class ConflictError(ServiceError):
    """409: state-machine violation (paid invoice, drawer already open/closed)."""

    status_code = 409


class DependencyError(ServiceError):
    """500: storage or external processor unavailable."""

    status_code = 500
