"""
Authentication REST API views.

Implements endpoints for:
- Registration
- Login and logout
- Session status (effective role and team participation)
- Own profile and password change
"""
from django.conf import settings
from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema, OpenApiExample
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.accounts.roles import RoleResolver
from apps.accounts.serializers import (
    AccountSerializer, ChangePasswordSerializer, LoginSerializer, RegistrationSerializer,
)
from apps.accounts.services import AuthService
from apps.core.exceptions import AuthenticationError, TransientStoreError, ValidationError
from apps.core.logging import SecurityLogger
from apps.core.permissions import role_unverifiable


def _rate_limited_response(request, endpoint, limit):
    email = request.data.get('email', 'unknown') if hasattr(request, 'data') else 'unknown'
    SecurityLogger.log_rate_limit_exceeded(
        endpoint=endpoint,
        ip_address=request.META.get('REMOTE_ADDR', 'unknown'),
        user_email=email,
        limit=limit
    )

    retry_after = 60
    response = Response(
        {
            'success': False,
            'message': 'Rate limit exceeded. Please try again later.',
            'code': 'RATE_LIMIT_EXCEEDED',
            'request_id': getattr(request, 'request_id', None),
        },
        status=status.HTTP_429_TOO_MANY_REQUESTS
    )
    response['Retry-After'] = str(retry_after)
    return response


@extend_schema(
    tags=['Authentication'],
    summary='Register new account',
    description='''
Register a new account. New accounts always start with the User class;
team roles come from team membership and Project Manager status is granted
by an Admin.

**No authentication required** - this is a public endpoint.

**Rate limit**: 10 requests/hour per IP
    ''',
    request=RegistrationSerializer,
    responses={
        201: OpenApiTypes.OBJECT,
        400: OpenApiTypes.OBJECT,
        409: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Registration Request',
            value={
                'firstName': 'Amina',
                'lastName': 'Otieno',
                'email': 'amina@example.com',
                'password': 'correct-horse-battery',
                'contact': '+254700111222',
            },
            request_only=True
        ),
    ]
)
@method_decorator(ratelimit(key='ip', rate='10/h', method='POST', block=False), name='dispatch')
class RegistrationView(APIView):
    """
    POST /v1/auth/register
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        if getattr(request, 'limited', False):
            return _rate_limited_response(request, '/v1/auth/register', '10/hour per IP')

        serializer = RegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user = AuthService.register_user(
            email=data['email'],
            password=data['password'],
            first_name=data['first_name'],
            last_name=data['last_name'],
            contact=data.get('contact', ''),
            avatar=data.get('avatar', ''),
        )

        return Response(
            {
                'success': True,
                'message': 'Registration successful',
                'user': AccountSerializer(user).data,
            },
            status=status.HTTP_201_CREATED
        )


@extend_schema(
    tags=['Authentication'],
    summary='Login',
    description='''
Authenticate with email and password. Returns a JWT and also sets it in the
session cookie.

**Rate limit**: 5 requests/minute per IP, 10 requests/hour per email
    ''',
    request=LoginSerializer,
    responses={
        200: OpenApiTypes.OBJECT,
        400: OpenApiTypes.OBJECT,
        401: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Success Response',
            value={
                'success': True,
                'message': 'Login successful',
                'token': 'eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...',
                'role': 'TeamLeader',
                'user': {'id': 'User-00010', 'email': 'amina@example.com'},
            },
            response_only=True
        ),
    ]
)
@method_decorator(ratelimit(key='ip', rate='5/m', method='POST', block=False), name='dispatch')
@method_decorator(ratelimit(key='post:email', rate='10/h', method='POST', block=False), name='dispatch')
class LoginView(APIView):
    """
    POST /v1/auth/login
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        if getattr(request, 'limited', False):
            return _rate_limited_response(request, '/v1/auth/login', '5/min per IP or 10/hour per email')

        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = AuthService.login(
            email=serializer.validated_data['email'],
            password=serializer.validated_data['password']
        )

        if not result:
            SecurityLogger.log_failed_login(
                email=serializer.validated_data['email'],
                ip_address=request.META.get('REMOTE_ADDR', 'unknown'),
                user_agent=request.META.get('HTTP_USER_AGENT', 'unknown'),
                reason='Invalid credentials'
            )
            raise AuthenticationError('Invalid email or password')

        response = Response(
            {
                'success': True,
                'message': 'Login successful',
                'token': result['token'],
                'role': result['role'],
                'user': AccountSerializer(result['user']).data,
            },
            status=status.HTTP_200_OK
        )
        response.set_cookie(
            settings.AUTH_COOKIE_NAME,
            result['token'],
            max_age=settings.JWT_EXPIRATION_HOURS * 3600,
            httponly=True,
            secure=settings.AUTH_COOKIE_SECURE,
            samesite=settings.AUTH_COOKIE_SAMESITE,
        )
        return response


@extend_schema(
    tags=['Authentication'],
    summary='Logout',
    description='Clear the session cookie. Tokens are stateless; clients should discard theirs.',
    request=None,
    responses={200: OpenApiTypes.OBJECT},
)
class LogoutView(APIView):
    """
    POST /v1/auth/logout
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        response = Response(
            {
                'success': True,
                'message': 'Logout successful'
            },
            status=status.HTTP_200_OK
        )
        response.delete_cookie(settings.AUTH_COOKIE_NAME, samesite=settings.AUTH_COOKIE_SAMESITE)
        return response


@extend_schema(
    tags=['Authentication'],
    summary='Session status',
    description='''
Return the caller's effective role, resolved from team membership at the
time of the call, and the teams the caller leads or belongs to.
    ''',
    request=None,
    responses={200: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT},
    examples=[
        OpenApiExample(
            'Team leader',
            value={
                'success': True,
                'role': 'TeamLeader',
                'teams': {'leading': ['Team-00003'], 'memberOf': []},
            },
            response_only=True
        ),
    ]
)
class StatusView(APIView):
    """
    POST /v1/auth/status
    """

    def post(self, request):
        user = request.user
        try:
            participation = RoleResolver.participation(user.id)
        except TransientStoreError as e:
            raise role_unverifiable(request, user, e) from e

        return Response(
            {
                'success': True,
                'role': request.role,
                'user': AccountSerializer(user).data,
                'teams': participation.to_dict(),
            },
            status=status.HTTP_200_OK
        )


@extend_schema(
    tags=['Authentication'],
    summary='Current account',
    responses={200: AccountSerializer, 401: OpenApiTypes.OBJECT},
)
class ProfileView(APIView):
    """
    GET /v1/auth/me
    """

    def get(self, request):
        return Response(
            {
                'success': True,
                'role': request.role,
                'user': AccountSerializer(request.user).data,
            },
            status=status.HTTP_200_OK
        )


@extend_schema(
    tags=['Authentication'],
    summary='Change password',
    request=ChangePasswordSerializer,
    responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT},
)
class ChangePasswordView(APIView):
    """
    POST /v1/auth/change-password
    """

    def post(self, request):
        serializer = ChangePasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        current_password = serializer.validated_data['current_password']
        new_password = serializer.validated_data['new_password']
        if current_password == new_password:
            raise ValidationError('New password must differ from the current one')

        AuthService.change_password(request.user, current_password, new_password)

        return Response(
            {
                'success': True,
                'message': 'Password changed'
            },
            status=status.HTTP_200_OK
        )
