# Domain errors raised by the collaboration and checkout services.
# server.py maps each class to an HTTP status; messages are user-facing.


class MarketplaceError(Exception):
    """Base class for errors the API reports back to the caller."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(MarketplaceError):
    pass


class AccessDenied(MarketplaceError):
    pass


class ValidationError(MarketplaceError):
    pass


class StateConflict(MarketplaceError):
    pass


class DuplicateCollaboration(StateConflict):
    pass


class InsufficientStock(StateConflict):
    pass


class UpstreamFailure(MarketplaceError):
    pass
