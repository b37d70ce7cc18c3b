"""Dashboard error taxonomy.

Validation errors describe a caller or authoring bug and are never retried.
Only ``OptimisticConcurrencyConflict`` and ``PersistenceFailure`` are
retryable; both are surfaced to the caller once the engine has given up.
"""

from __future__ import annotations

from typing import Iterable


class DashboardError(Exception):
    """Base class for every error raised by the dashboard engine."""

    code = "DASHBOARD_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "retryable": self.retryable}


class TemplateNotFound(DashboardError):
    code = "TEMPLATE_NOT_FOUND"
    status_code = 404

    def __init__(self, template_id: str, version: int | None = None):
        suffix = f" (version {version})" if version is not None else ""
        super().__init__(f"Dashboard template '{template_id}'{suffix} not found")
        self.template_id = template_id
        self.version = version


class InvalidTemplate(DashboardError):
    code = "INVALID_TEMPLATE"
    status_code = 422

    def __init__(self, template_id: str, violations: Iterable[str]):
        self.violations = list(violations)
        super().__init__(
            f"Template '{template_id}' violates {len(self.violations)} invariant(s)"
        )
        self.template_id = template_id

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["violations"] = self.violations
        return data


class InvalidOverrideReference(DashboardError):
    code = "INVALID_OVERRIDE_REFERENCE"
    status_code = 422

    def __init__(self, template_id: str, widget_ids: Iterable[str]):
        self.widget_ids = sorted(widget_ids)
        super().__init__(
            f"Unknown widget id(s) for template '{template_id}': {', '.join(self.widget_ids)}"
        )
        self.template_id = template_id

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["widget_ids"] = self.widget_ids
        return data


class OutOfBoundsPosition(DashboardError):
    code = "OUT_OF_BOUNDS_POSITION"
    status_code = 422

    def __init__(self, widget_id: str, reason: str):
        super().__init__(f"Position for widget '{widget_id}' is out of bounds: {reason}")
        self.widget_id = widget_id


class WidgetMutationNotAllowed(DashboardError):
    code = "WIDGET_MUTATION_NOT_ALLOWED"
    status_code = 403

    def __init__(self, widget_id: str, reason: str):
        super().__init__(f"Mutation of widget '{widget_id}' not allowed: {reason}")
        self.widget_id = widget_id


class OptimisticConcurrencyConflict(DashboardError):
    code = "OPTIMISTIC_CONCURRENCY_CONFLICT"
    status_code = 409
    retryable = True

    def __init__(self, user_id: str, template_id: str, expected_version: int):
        super().__init__(
            f"Layout override for user '{user_id}' on '{template_id}' changed since "
            f"version {expected_version}; re-fetch and reapply"
        )
        self.user_id = user_id
        self.template_id = template_id
        self.expected_version = expected_version


class PersistenceFailure(DashboardError):
    code = "PERSISTENCE_FAILURE"
    status_code = 503
    retryable = True

    def __init__(self, operation: str, attempts: int, cause: str = ""):
        detail = f": {cause}" if cause else ""
        super().__init__(f"{operation} failed after {attempts} attempt(s){detail}")
        self.operation = operation
        self.attempts = attempts
