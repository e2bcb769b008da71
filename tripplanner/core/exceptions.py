"""
Exceptions raised by the trip planning engine.

Scarcity and degraded external services are never raised to callers; they
surface as ``PlanWarning`` entries on the returned plan.
"""


class InvalidTripRequestError(ValueError):
    """The trip request cannot be planned (e.g. unknown country with no origin)."""


class PlanInvariantError(RuntimeError):
    """A pipeline stage received input that should be impossible."""


class CircuitOpenError(RuntimeError):
    def __init__(self, service_name: str):
        super().__init__(f"Circuit breaker is open for {service_name} - using fallback")
        self.service_name = service_name


class PlacesApiError(RuntimeError):
    """Non-OK status or malformed payload from the Places API."""
