"""
Exceptions raised by the route engine and its provider services.
"""


class ProviderUnavailable(Exception):
    """A single search, details or geocoding call failed or timed out."""

    def __init__(self, provider: str, operation: str, detail: str = ""):
        self.provider = provider
        self.operation = operation
        self.detail = detail
        message = f"{provider} {operation} unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class InvalidRouteRequest(ValueError):
    """The request was rejected before any external call was made."""


class RequestCancelled(Exception):
    """The caller went away; in-flight work was abandoned."""


def raise_if_cancelled(cancel_event) -> None:
    """Raise RequestCancelled when the caller's cancellation event is set."""
    if cancel_event is not None and cancel_event.is_set():
        raise RequestCancelled("Route generation cancelled by caller")
