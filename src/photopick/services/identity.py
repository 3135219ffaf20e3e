"""Client identity boundary."""

from dataclasses import dataclass
from typing import Protocol

from photopick.domain.errors import IdentityUnavailableError


class IdentityBootstrap(Protocol):
    """Interface for establishing the client identity."""

    async def sign_in(self, access_token: str | None = None) -> str:
        """Sign in and return the opaque identity."""


@dataclass
class ClientIdentity:
    """Holds the opaque identity of this client once it is known.

    The identity starts unavailable and may be set once; setting the same
    value again is a no-op.
    """

    _value: str | None = None

    @property
    def current(self) -> str | None:
        return self._value

    def set(self, value: str) -> None:
        """Publish the identity."""
        if not value:
            raise ValueError("identity must not be empty")
        if self._value == value:
            return
        if self._value is not None:
            raise ValueError("client identity is already set")
        self._value = value

    def require(self) -> str:
        """Return the identity or raise if it is not available yet."""
        if self._value is None:
            raise IdentityUnavailableError("client identity is not available yet")
        return self._value
