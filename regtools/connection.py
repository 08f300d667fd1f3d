"""
The connection record handed to the registry client, and the small contract
used to look up whichever record is currently active.

Storing and choosing records is somebody else's job; this module only
describes what the client needs from them.
"""

from dataclasses import dataclass
from typing import Protocol

from utils.errors import NotFoundError


@dataclass(frozen=True, slots=True)
class RegistryConnection:
    """
    Endpoint and credentials for one registry.

    Certificate verification is off unless asked for, since these registries
    are usually self hosted behind a self-signed certificate.
    """

    url: str
    username: str = ""
    password: str = ""
    verify_tls: bool = False
    name: str = ""

    @property
    def base_url(self) -> str:
        """The URL without a trailing slash, ready for /v2/ paths to be appended"""
        return self.url.rstrip("/")

    @property
    def has_credentials(self) -> bool:
        """Basic auth is only sent when both halves are present"""
        return bool(self.username) and bool(self.password)

    def __str__(self) -> str:
        return f"Registry {self.name or self.base_url}"


class ConnectionLookup(Protocol):
    def lookup_active_connection(self) -> RegistryConnection | None: ...


class StaticConnectionLookup:
    """
    A lookup which holds zero or one connection, for command line use and
    tests where the record comes from arguments rather than a database.
    """

    def __init__(self, connection: RegistryConnection | None = None) -> None:
        self._connection = connection

    def lookup_active_connection(self) -> RegistryConnection | None:
        return self._connection


def resolve_active_connection(lookup: ConnectionLookup) -> RegistryConnection:
    """
    Returns the active connection, raising NotFoundError when none is configured
    """
    connection = lookup.lookup_active_connection()
    if connection is None:
        raise NotFoundError("No active registry")
    return connection
