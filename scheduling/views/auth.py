"""
Authentication views.

Login exchanges a username/password for a simplejwt access/refresh pair
whose access token carries the user's role.  Token verification itself
lives in ``scheduling.authentication`` so DRF can load it from settings
without importing the views.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate
from django.contrib.auth.models import update_last_login
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer

from scheduling.exceptions import Unauthenticated
from scheduling.serializers.auth import LoginSerializer
from scheduling.services.tokens import Authenticator

logger = logging.getLogger(__name__)


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    username = s.validated_data['username']

    user = authenticate(request, username=username, password=s.validated_data['password'])
    if user is None:
        # only the username is logged, never the password
        logger.warning('failed login for %r from %s', username, request.META.get('REMOTE_ADDR'))
        raise Unauthenticated('Invalid username or password.')

    tokens = Authenticator().issue_tokens(user)
    update_last_login(None, user)
    logger.info('user %s logged in as %s', user.pk, user.role)
    return Response({
        'ok': True,
        'access': tokens['access'],
        'refresh': tokens['refresh'],
        'role': user.role,
        'user': {
            'id': user.id,
            'username': user.username,
            'name': user.get_full_name() or user.username,
            'role': user.role,
        },
    })

# api_view builds a class; ScopedRateThrottle reads the scope from it
login_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def refresh_view(request):
    """Return a new access token for a valid refresh token."""
    s = TokenRefreshSerializer(data=request.data)
    try:
        s.is_valid(raise_exception=True)
    except TokenError as exc:
        logger.info('rejected refresh token: %s', exc)
        raise Unauthenticated('Refresh token is invalid or expired.') from exc
    return Response({'ok': True, **s.validated_data})
