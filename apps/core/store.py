"""
Entity store helpers shared by every app.

Relationships between records are plain string identifiers, and
multi-valued relationships are JSON arrays of identifiers. These helpers
cover the lookups and error mapping the ORM does not give us directly.
"""
import functools
import logging
from contextlib import contextmanager
from django.db import connection, InterfaceError, OperationalError
from django.db.models import Q

from apps.core.exceptions import TransientStoreError

logger = logging.getLogger(__name__)


def array_contains(field, value):
    """
    Return a Q matching rows whose JSON array ``field`` contains ``value``.

    PostgreSQL and MySQL support ``__contains`` on JSON columns. SQLite does
    not, so there we match the quoted JSON string inside the serialized array.
    Identifiers never contain quotes and differ by more than case, which
    keeps the text match exact.
    """
    if connection.features.supports_json_field_contains:
        return Q(**{f'{field}__contains': [value]})
    return Q(**{f'{field}__icontains': f'"{value}"'})


def remove_from_array(queryset, field, value):
    """
    Remove ``value`` from the JSON array ``field`` of every row in ``queryset``.

    Returns the number of rows changed. Rows not holding the value are left
    alone, so running it twice is harmless.
    """
    changed = 0
    for record in queryset.filter(array_contains(field, value)):
        current = getattr(record, field) or []
        remaining = [item for item in current if item != value]
        if remaining != current:
            type(record).objects.filter(pk=record.pk).update(**{field: remaining})
            changed += 1
    return changed


@contextmanager
def store_errors(operation: str):
    """
    Map database availability failures to TransientStoreError.

    Example:
        >>> with store_errors('resolve_role'):
        ...     Team.objects.filter(...).exists()
    """
    try:
        yield
    except (OperationalError, InterfaceError) as e:
        logger.error(
            f"Store unavailable during {operation}",
            extra={'operation': operation, 'error': str(e)},
        )
        raise TransientStoreError(
            'The data store is temporarily unavailable. Please retry.',
            details={'operation': operation},
        ) from e


def transient_store(operation: str):
    """Decorator form of ``store_errors``."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with store_errors(operation):
                return func(*args, **kwargs)
        return wrapper
    return decorator
