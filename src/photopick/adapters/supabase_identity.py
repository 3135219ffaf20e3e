"""Supabase Auth sign-in that publishes the client identity."""

import logging
from dataclasses import dataclass

from supabase import AsyncClient, AuthError

from photopick.domain.errors import IdentityUnavailableError, TransportError
from photopick.services.identity import ClientIdentity, IdentityBootstrap

_logger = logging.getLogger(__name__)


@dataclass
class SupabaseIdentityBootstrap(IdentityBootstrap):
    """Signs in with a provided access token, or anonymously."""

    client: AsyncClient
    identity: ClientIdentity

    async def sign_in(self, access_token: str | None = None) -> str:
        """Sign in and store the resulting user id as the client identity."""
        try:
            if access_token:
                response = await self.client.auth.get_user(access_token)
            else:
                response = await self.client.auth.sign_in_anonymously()
        except AuthError as exc:
            raise TransportError(f"Sign-in failed: {exc}") from exc
        user = getattr(response, "user", None)
        if user is None:
            raise IdentityUnavailableError("Sign-in returned no user")
        self.identity.set(str(user.id))
        _logger.info(
            "Signed in %s", "with access token" if access_token else "anonymously"
        )
        return str(user.id)
