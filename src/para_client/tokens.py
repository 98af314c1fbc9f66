import logging
from typing import Any

from .base import TRANSPORT_ERRORS, _ParaClientBase, has_user_and_jwt
from .exceptions import ParaError
from .urlparsing import JWT_PATH

logger = logging.getLogger(__name__)


class _TokenOperations(_ParaClientBase):
    def get_access_token(self) -> str | None:
        return self.token_session.token

    def set_access_token(self, token: str | None):
        self.token_session.set_token(token)

    def clear_access_token(self):
        self.token_session.clear()

    async def sign_in(
        self, provider: str, provider_token: str, remember: bool = True
    ) -> dict[str, Any] | None:
        """Exchanges an identity provider token for a Para JWT.

        Twitter uses OAuth 1, pass ``{oauth_token}:{oauth_token_secret}`` as
        the provider token. Returns the user object, or None when anything
        fails. The JWT is kept for later requests when ``remember`` is true.
        """
        if not provider or not provider_token:
            return None

        credentials = {
            "appid": self.access_key,
            "provider": provider,
            "token": provider_token,
        }
        try:
            result = await self.invoke_post(JWT_PATH, credentials)
        except (ParaError, *TRANSPORT_ERRORS) as e:
            logger.debug("Sign in with '%s' failed: %s", provider, e)
            self.clear_access_token()
            return None

        if not has_user_and_jwt(result):
            self.clear_access_token()
            return None

        if remember:
            self.token_session.store_jwt(result["jwt"])
        return result["user"]

    def sign_out(self):
        """Forgets the JWT locally, the token itself is not revoked."""
        self.clear_access_token()

    async def revoke_all_tokens(self) -> bool:
        """Revokes every token of the current user ("logout everywhere")."""
        try:
            await self.invoke_delete(JWT_PATH)
        except TRANSPORT_ERRORS as e:
            logger.debug("Token revocation did not complete: %s", e)
            return False
        except ParaError as e:
            logger.debug("Token revocation rejected: %s", e)
            self.clear_access_token()
            return False

        self.clear_access_token()
        return True

    async def me(self, access_token: str | None = None) -> Any:
        if access_token:
            if not access_token.startswith("Bearer"):
                access_token = f"Bearer {access_token}"
            return await self.invoke_signed_request(
                "GET", "_me", headers={"Authorization": access_token}
            )
        return await self.invoke_get("_me")

    async def new_keys(self) -> dict[str, Any]:
        """Generates new API keys. The old secret stops working immediately."""
        result = await self.invoke_post("_newkeys")
        if not isinstance(result, dict):
            return {}

        secret = result.get("secretKey")
        if isinstance(secret, str) and secret.strip():
            self.secret_key = secret
        return result
