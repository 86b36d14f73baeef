"""Mapping of a raw profile to the application's user and account.

The provider's ``profile`` hook is application code run against whatever the
provider sent. Its failures are isolated here: they are logged together with
the raw profile and the flow completes without a user or account, because a
provider sending garbage cannot be told apart from a user who cancelled
upstream.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Optional, Union

from authcallback.exceptions import OAuthProfileParseError
from authcallback.models import (
    Account,
    OAuthProviderConfig,
    OIDCProviderConfig,
    TokenSet,
    User,
)

logger = logging.getLogger(__name__)


def random_id() -> str:
    """Return a fresh random identifier."""
    return str(uuid.uuid4())


class IdentityAssembler:
    """Build the :class:`User` and :class:`Account` for a resolved profile.

    Args:
        id_factory: Produces identifiers for new users and for accounts
            whose profile carries no ``id``.
    """

    def __init__(self, id_factory: Callable[[], str] = random_id) -> None:
        self._id_factory = id_factory

    async def assemble(
        self,
        provider: Union[OAuthProviderConfig, OIDCProviderConfig],
        profile: dict[str, Any],
        tokens: TokenSet,
    ) -> tuple[Optional[User], Optional[Account]]:
        """Return ``(user, account)``, or ``(None, None)`` if mapping failed."""
        try:
            mapped = await provider.hooks.profile(profile, tokens)
            email = mapped.get("email")
            user = User.model_validate(
                {
                    **mapped,
                    "id": self._id_factory(),
                    "email": email.lower() if email is not None else None,
                }
            )
            account_id = mapped.get("id")
            account = Account.model_validate(
                {
                    **tokens.model_dump(exclude_none=True),
                    "provider": provider.id,
                    "type": provider.type,
                    "provider_account_id": (
                        str(account_id) if account_id is not None else self._id_factory()
                    ),
                }
            )
        except Exception as exc:
            logger.debug("Raw profile from provider '%s': %s", provider.id, profile)
            logger.error("%s", OAuthProfileParseError(exc, provider_id=provider.id))
            return None, None
        return user, account
