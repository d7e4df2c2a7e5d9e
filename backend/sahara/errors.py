# error taxonomy shared by the store, pipeline, providers and routers
# each error knows the http status it maps to; main.py renders them

from typing import Optional


class WellnessError(Exception):
    """base for every error this service raises on purpose"""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.error
        super().__init__(self.message)


class ValidationError(WellnessError):
    """bad input shape or size, user-correctable"""

    status_code = 400
    error = "Validation error"


class Unauthenticated(WellnessError):
    """missing, malformed or expired bearer credential"""

    status_code = 401
    error = "Authentication required"


class Unauthorized(WellnessError):
    """authenticated subject does not own the requested record"""

    status_code = 403
    error = "Unauthorized access"


class NotFound(WellnessError):
    status_code = 404
    error = "Not found"


class ProviderError(WellnessError):
    """upstream ai/speech provider failure"""

    status_code = 502
    error = "Provider error"


class ProviderUnavailable(ProviderError):
    """transport, auth or timeout failure talking to a provider"""

    status_code = 503
    error = "Provider unavailable"


class ProviderEmptyResult(ProviderError):
    """provider answered but produced no usable output"""

    error = "Provider returned no result"


class MalformedProviderJSON(ProviderError):
    """provider text did not contain a decodable json object"""

    error = "Provider returned malformed JSON"


class InternalError(WellnessError):
    status_code = 500
    error = "Internal server error"
