"""
Error Taxonomy

Exceptions raised by the patient-simulation core. Routers translate them
into HTTP responses; the orchestrator and session cache decide which ones
degrade gracefully and which ones reach the caller.
"""


class PatientSimError(Exception):
    """Base class for all errors raised by the core."""


class AuthorizationError(PatientSimError):
    """The request carries no identity token, or the token failed verification."""


class GenerationFailure(PatientSimError):
    """The text generation call failed or returned an unusable response."""


class CacheUnavailable(PatientSimError):
    """A session or archive backend could not be reached."""
