"""
Custom DRF authentication classes.
"""
import logging
from django.conf import settings
from rest_framework.authentication import BaseAuthentication, get_authorization_header

from apps.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class JWTAuthentication(BaseAuthentication):
    """
    Authenticate requests carrying a session token.

    The token is read from ``Authorization: Bearer <token>`` or, failing
    that, from the session cookie set at login. Requests without either are
    anonymous; requests with an invalid or expired token are rejected.
    """

    keyword = 'Bearer'

    def authenticate(self, request):
        token = self._get_token(request)
        if not token:
            return None

        from apps.accounts.services import AuthService

        user = AuthService.get_user_from_jwt(token)
        if user is None:
            logger.info(
                "Rejected invalid or expired session token",
                extra={'path': request.path, 'request_id': getattr(request, 'request_id', None)}
            )
            raise AuthenticationError('Invalid or expired token')

        return (user, token)

    def authenticate_header(self, request):
        return self.keyword

    def _get_token(self, request):
        auth = get_authorization_header(request).split()
        if auth and auth[0].lower() == self.keyword.lower().encode():
            if len(auth) != 2:
                raise AuthenticationError('Invalid Authorization header')
            return auth[1].decode('utf-8', errors='ignore')

        cookie_name = getattr(settings, 'AUTH_COOKIE_NAME', 'token')
        return request.COOKIES.get(cookie_name) or None
