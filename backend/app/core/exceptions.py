"""Analytics engine exceptions.

Services raise these; the API layer maps them onto HTTP status codes
(see ``server.py``). Evaluation-time failures are never raised to callers,
they are folded into a ``WidgetResult`` with ``status="error"``.
"""


class AnalyticsError(Exception):
    """Base class for every error raised by the analytics services."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DefinitionError(AnalyticsError, ValueError):
    """An invalid metric / widget / schedule definition (rejected before storing)."""

    status_code = 422


class NotFoundError(AnalyticsError):
    status_code = 404


class PermissionDeniedError(AnalyticsError):
    status_code = 403


class ConflictError(AnalyticsError):
    """Stale dashboard save when optimistic concurrency was requested."""

    status_code = 409
