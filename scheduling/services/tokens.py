"""
Token issuing and caller identity.

Tokens are simplejwt access/refresh pairs.  The access token carries the
user's role next to the user id, so an :class:`Identity` can be rebuilt
from a token without trusting anything in the request body.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings as jwt_settings
from rest_framework_simplejwt.tokens import AccessToken, RefreshToken

from scheduling.exceptions import Unauthenticated
from scheduling.models import Role

logger = logging.getLogger(__name__)

ROLE_CLAIM = 'role'


@dataclass(frozen=True)
class Identity:
    """Authenticated caller: a role plus the id of the user account."""
    role: Role
    user_id: int

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @classmethod
    def for_user(cls, user) -> 'Identity':
        return cls(role=Role(user.role), user_id=user.pk)


class Authenticator:

    def issue_tokens(self, user) -> dict[str, str]:
        refresh = RefreshToken.for_user(user)
        refresh[ROLE_CLAIM] = user.role
        return {'access': str(refresh.access_token), 'refresh': str(refresh)}

    def identity_from_token(self, token: str) -> Identity:
        """Decode ``token`` into an :class:`Identity` or raise ``Unauthenticated``."""
        if not token:
            raise Unauthenticated()
        try:
            access = AccessToken(token)
        except TokenError as exc:
            logger.info('rejected token: %s', exc)
            raise Unauthenticated('Token is invalid or expired.') from exc

        user_id = access.get(jwt_settings.USER_ID_CLAIM)
        try:
            role = Role(access.get(ROLE_CLAIM))
            user_id = int(user_id)
        except (TypeError, ValueError) as exc:
            raise Unauthenticated('Token does not carry a valid identity.') from exc
        return Identity(role=role, user_id=user_id)
