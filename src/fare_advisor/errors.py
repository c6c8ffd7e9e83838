"""
Error Taxonomy
==============

Exceptions raised by the fare advisor engine.
"""


class FareAdvisorError(Exception):
    """Base class for all engine errors."""


class ProviderUnavailable(FareAdvisorError):
    """A real-quote provider failed or returned no data."""

    def __init__(self, provider: str, reason: str = "no data"):
        self.provider = provider
        self.reason = reason
        super().__init__(f"Provider {provider} unavailable: {reason}")


class UnknownRoute(FareAdvisorError):
    """No seasonal profile exists for the requested route."""

    def __init__(self, route: str):
        self.route = route
        super().__init__(f"No seasonal profile for route {route}")


class InsufficientValidationData(FareAdvisorError):
    """Validation was requested without any backtest trials."""


class InvalidInput(FareAdvisorError):
    """Request rejected at the API boundary."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid input")
