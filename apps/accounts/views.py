"""
Account administration API views. Admin only.
"""
import logging
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema, OpenApiExample, OpenApiParameter
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.accounts.serializers import (
    AccountBatchUpdateSerializer, AccountDeleteSerializer,
    AccountListQuerySerializer, AccountSerializer,
)
from apps.accounts.services import AccountService
from apps.core.permissions import requires_operation

logger = logging.getLogger(__name__)


@extend_schema(
    tags=['Administration'],
    summary='List accounts',
    parameters=[
        OpenApiParameter(
            name='accountClass',
            type=str,
            enum=['Admin', 'ProjectManager', 'User'],
            required=False,
            description='Only return accounts of this class'
        ),
    ],
    responses={200: AccountSerializer(many=True), 401: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
)
@requires_operation('accounts:list')
class AccountListView(APIView):
    """
    GET /v1/admin/accounts
    """

    def get(self, request):
        query = AccountListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        accounts = AccountService.list_accounts(query.validated_data.get('account_class'))

        return Response(
            {
                'success': True,
                'count': len(accounts),
                'users': AccountSerializer(accounts, many=True).data,
            },
            status=status.HTTP_200_OK
        )


@extend_schema(
    tags=['Administration'],
    summary='Update accounts',
    description='''
Update several accounts in one call. Each entry is applied on its own;
failed entries are reported without rolling back the others.

Returns 200 when every entry succeeded and 207 otherwise.
    ''',
    request=AccountBatchUpdateSerializer,
    responses={200: OpenApiTypes.OBJECT, 207: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT},
)
@requires_operation('accounts:update')
class AccountBatchUpdateView(APIView):
    """
    PUT /v1/admin/update-accounts
    """

    def put(self, request):
        serializer = AccountBatchUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = AccountService.update_accounts(
            [dict(item) for item in serializer.validated_data['users']],
            updated_by=request.user.id
        )

        return Response(
            result.to_dict('Account update completed'),
            status=result.http_status
        )


@extend_schema(
    tags=['Administration'],
    summary='Delete accounts',
    description='''
Delete accounts together with everything that depends on them.

- Deleting a Project Manager removes their teams, projects, assignment logs
  and tasks, in that dependency order.
- Deleting any other account removes it from team rosters and task
  assignments.
- Admin accounts cannot be deleted.

Returns 200 when every id was deleted and 207 otherwise.
    ''',
    request=AccountDeleteSerializer,
    responses={200: OpenApiTypes.OBJECT, 207: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT},
    examples=[
        OpenApiExample(
            'Partial failure',
            value={
                'success': False,
                'message': 'Account deletion completed',
                'details': {
                    'successfulCount': 1,
                    'failedCount': 1,
                    'results': [
                        {'id': 'User-00011', 'success': True, 'message': 'Account deleted'},
                        {'id': 'User-09999', 'success': False, 'message': 'Account User-09999 not found'},
                    ],
                },
            },
            response_only=True
        ),
    ]
)
@requires_operation('accounts:delete')
class AccountDeleteView(APIView):
    """
    DELETE /v1/admin/delete-accounts
    """

    def delete(self, request):
        serializer = AccountDeleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = AccountService.delete_accounts(
            serializer.validated_data['ids'],
            deleted_by=request.user.id
        )

        return Response(
            result.to_dict('Account deletion completed'),
            status=result.http_status
        )


@extend_schema(
    tags=['Administration'],
    summary='Promote to Project Manager',
    request=None,
    responses={
        200: AccountSerializer,
        404: OpenApiTypes.OBJECT,
        409: OpenApiTypes.OBJECT,
    },
)
@requires_operation('accounts:promote')
class AccountPromoteView(APIView):
    """
    POST /v1/admin/accounts/{id}/promote
    """

    def post(self, request, account_id):
        user = AccountService.promote_to_project_manager(account_id, promoted_by=request.user.id)

        return Response(
            {
                'success': True,
                'message': 'Account promoted to ProjectManager',
                'user': AccountSerializer(user).data,
            },
            status=status.HTTP_200_OK
        )
