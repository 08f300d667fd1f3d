"""
Exceptions raised while talking to a registry.

Every failure the registry client can report derives from RegistryError, so
callers which only want to relay a message can catch that one type.
"""


class RegistryError(Exception):
    """Base exception for registry operations"""

    pass


class RegistryConnectionError(RegistryError):
    """
    The registry could not be reached at all: DNS, refused connection,
    TLS problems or a timeout
    """

    pass


class UnexpectedStatusError(RegistryError):
    """
    The registry answered, but not with a status the operation accepts.
    The raw body is kept so it can be surfaced verbatim.
    """

    def __init__(self, operation: str, status_code: int, body: str) -> None:
        self.operation = operation
        self.status_code = status_code
        self.body = body
        super().__init__(f"failed to {operation}: {status_code} - {body}")


class DecodeError(RegistryError):
    """The response body was not the JSON document expected"""

    pass


class NotFoundError(RegistryError):
    """No active registry is configured, or no manifest could be selected"""

    pass


class ValidationError(RegistryError):
    """A caller supplied a missing or invalid parameter"""

    pass
