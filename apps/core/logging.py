"""
Structured JSON logging and security event logging.
"""
import json
import logging
import re
import traceback
from datetime import datetime
from django.utils import timezone
import sentry_sdk


class PIIMasker:
    """
    Utility class to mask sensitive PII data in logs.
    """

    PHONE_PATTERN = re.compile(r'\+?\d{10,15}')
    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b')
    SECRET_PATTERN = re.compile(r'(token|secret|password|auth)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)', re.IGNORECASE)

    SENSITIVE_FIELDS = {
        'contact', 'phone',
        'email',
        'password', 'password_hash', 'new_password', 'current_password',
        'token', 'access_token', 'jwt',
        'secret', 'secret_key',
    }

    @classmethod
    def mask_phone(cls, text):
        """Mask phone numbers in text."""
        if not isinstance(text, str):
            return text
        return cls.PHONE_PATTERN.sub(lambda m: m.group(0)[:3] + '*' * (len(m.group(0)) - 3), text)

    @classmethod
    def mask_email(cls, text):
        """Mask email addresses in text."""
        if not isinstance(text, str):
            return text

        def mask_email_match(match):
            username, _, domain = match.group(0).partition('@')
            if len(username) > 1:
                username = username[0] + '*' * (len(username) - 1)
            return f"{username}@{domain}"

        return cls.EMAIL_PATTERN.sub(mask_email_match, text)

    @classmethod
    def mask_secrets(cls, text):
        """Mask tokens, passwords and secrets in text."""
        if not isinstance(text, str):
            return text
        return cls.SECRET_PATTERN.sub(r'\1: ********', text)

    @classmethod
    def mask_text(cls, text):
        """Apply all masking patterns to text."""
        if not isinstance(text, str):
            return text
        text = cls.mask_phone(text)
        text = cls.mask_email(text)
        text = cls.mask_secrets(text)
        return text

    @classmethod
    def mask_dict(cls, data):
        """Recursively mask sensitive data in dictionaries."""
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            if key.lower() in cls.SENSITIVE_FIELDS:
                masked[key] = '********' if value and not isinstance(value, (dict, list)) else value
            elif isinstance(value, dict):
                masked[key] = cls.mask_dict(value)
            elif isinstance(value, list):
                masked[key] = [
                    cls.mask_dict(item) if isinstance(item, dict)
                    else cls.mask_text(item) if isinstance(item, str)
                    else item
                    for item in value
                ]
            elif isinstance(value, str):
                masked[key] = cls.mask_text(value)
            else:
                masked[key] = value

        return masked


class JSONFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.

    Includes request_id from extra fields when present and masks PII in the
    message and in any extra fields.
    """

    RESERVED = {
        'name', 'msg', 'args', 'created', 'filename', 'funcName',
        'levelname', 'levelno', 'lineno', 'module', 'msecs', 'message',
        'pathname', 'process', 'processName', 'relativeCreated',
        'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
        'taskName', 'request_id',
    }

    def format(self, record):
        log_data = {
            'timestamp': datetime.utcnow().isoformat() + 'Z',
            'level': record.levelname,
            'logger': record.name,
            'message': PIIMasker.mask_text(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if getattr(record, 'request_id', None):
            log_data['request_id'] = record.request_id

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': PIIMasker.mask_text(str(record.exc_info[1])),
                'traceback': [PIIMasker.mask_text(line) for line in traceback.format_exception(*record.exc_info)],
            }

        for key, value in record.__dict__.items():
            if key in self.RESERVED or key.startswith('_'):
                continue
            if isinstance(value, dict):
                value = PIIMasker.mask_dict(value)
            elif isinstance(value, str):
                value = PIIMasker.mask_text(value)
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = PIIMasker.mask_text(str(value))

        return json.dumps(log_data)


class SecurityLogger:
    """
    Centralized logging for security-relevant events.

    Events go to the ``security`` logger with structured context. Critical
    events are also forwarded to Sentry.
    """

    CRITICAL_EVENTS = {
        'role_resolution_failed',
        'suspicious_activity',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context):
        """
        Log a security event with structured data.

        Example:
            >>> SecurityLogger.log_event('failed_login', ip_address='10.0.0.1')
        """
        logger = logging.getLogger('security')

        log_data = {
            'event_type': event_type,
            'event_time': timezone.now().isoformat(),
        }
        log_data.update(context)
        log_data = PIIMasker.mask_dict(log_data)

        log_method = getattr(logger, level, logger.warning)
        log_method(f"Security event: {event_type}", extra=log_data)

        if event_type in SecurityLogger.CRITICAL_EVENTS:
            sentry_sdk.capture_message(
                f"Critical security event: {event_type}",
                level='error',
            )

    @staticmethod
    def log_failed_login(email: str, ip_address: str, user_agent: str = None, reason: str = None):
        SecurityLogger.log_event(
            'failed_login',
            level='warning',
            email=email,
            ip_address=ip_address,
            user_agent=user_agent,
            reason=reason
        )

    @staticmethod
    def log_permission_denied(account_id, role, operation: str, reason: str, ip_address: str = None):
        """Log an Access-Control Gate denial."""
        SecurityLogger.log_event(
            'permission_denied',
            level='warning',
            account_id=account_id,
            role=role,
            operation=operation,
            reason=reason,
            ip_address=ip_address
        )

    @staticmethod
    def log_role_resolution_failed(account_id, error: str, ip_address: str = None):
        """
        Log a role lookup that failed against the store.

        The request is treated as unauthenticated; repeated occurrences point
        at store availability problems.
        """
        SecurityLogger.log_event(
            'role_resolution_failed',
            level='error',
            account_id=account_id,
            error=error,
            ip_address=ip_address
        )

    @staticmethod
    def log_rate_limit_exceeded(endpoint: str, ip_address: str, user_email: str = None, limit: str = None):
        SecurityLogger.log_event(
            'rate_limit_exceeded',
            level='warning',
            endpoint=endpoint,
            ip_address=ip_address,
            user_email=user_email,
            limit=limit
        )

    @staticmethod
    def log_account_deleted(account_id: str, account_class: str, deleted_by: str):
        SecurityLogger.log_event(
            'account_deleted',
            level='info',
            account_id=account_id,
            account_class=account_class,
            deleted_by=deleted_by
        )

    @staticmethod
    def log_account_promoted(account_id: str, promoted_by: str):
        SecurityLogger.log_event(
            'account_promoted',
            level='info',
            account_id=account_id,
            promoted_by=promoted_by
        )
