"""WebSocket authentication middleware for JWT auth."""

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

User = get_user_model()
logger = logging.getLogger(__name__)


@database_sync_to_async
def get_active_user(user_id):
    return User.objects.filter(id=user_id, is_active=True).first() or AnonymousUser()


def token_from_scope(scope):
    """
    Read the access token from either:
    1. JWT in querystring (?token=...) - mobile clients
    2. Authorization: Bearer <token> header
    """
    params = parse_qs(scope.get("query_string", b"").decode())
    token_list = params.get("token")
    if token_list:
        return token_list[0]

    for name, value in scope.get("headers", []):
        if name == b"authorization":
            scheme, _, token = value.decode().partition(" ")
            if scheme.lower() == "bearer" and token:
                return token
    return None


class JWTAuthMiddleware(BaseMiddleware):
    """Populate scope["user"] from a simplejwt access token; anonymous otherwise."""

    async def __call__(self, scope, receive, send):
        scope["user"] = AnonymousUser()

        token = token_from_scope(scope)
        if token:
            try:
                access = AccessToken(token)
                scope["user"] = await get_active_user(access["user_id"])
            except (TokenError, KeyError) as e:
                logger.debug("JWT auth failed: %s", e)

        return await super().__call__(scope, receive, send)
