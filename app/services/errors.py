from fastapi import status


class MarketplaceError(Exception):
    """Base class for typed failures returned to the caller."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request failed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationFailed(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class Forbidden(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"


class NotFound(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class InvalidState(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Operation not allowed in the current state"


class DuplicateRequest(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Duplicate request"


class InsufficientTokens(MarketplaceError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_detail = "You do not have enough tokens to place a bid."


class StoreUnavailable(MarketplaceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Storage is temporarily unavailable, please retry"
