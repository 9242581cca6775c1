"""
Bearer token authentication for the scheduling API.

Resolves the ``Authorization: Bearer <token>`` header through the
:class:`~scheduling.services.tokens.Authenticator` and exposes the
resulting :class:`~scheduling.services.tokens.Identity` as
``request.auth``.  Keeping this separate from the views avoids circular
imports when DRF loads authentication classes from settings.
"""
from __future__ import annotations

from django.contrib.auth import get_user_model
from rest_framework import authentication

from scheduling.exceptions import Unauthenticated
from scheduling.services.tokens import Authenticator

User = get_user_model()


class BearerIdentityAuthentication(authentication.BaseAuthentication):

    keyword = 'Bearer'

    def authenticate(self, request):
        header = authentication.get_authorization_header(request).split()
        if not header or header[0].lower() != self.keyword.lower().encode():
            return None
        if len(header) != 2:
            raise Unauthenticated('Invalid Authorization header.')

        try:
            token = header[1].decode()
        except UnicodeError:
            raise Unauthenticated('Invalid Authorization header.')

        identity = Authenticator().identity_from_token(token)
        user = User.objects.filter(pk=identity.user_id, is_active=True).first()
        if user is None:
            raise Unauthenticated('User is inactive or deleted.')
        return user, identity

    def authenticate_header(self, request):
        return self.keyword
