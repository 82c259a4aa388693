from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging
import sys

logger = logging.getLogger(__name__)

JWT_KEY_HINT = "Generate a strong key with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Perform startup validation checks when Django initializes.

        Only runserver and gunicorn validate; migrate, shell and test runs
        work with the development defaults.
        """
        if 'runserver' not in sys.argv and 'gunicorn' not in sys.argv[0]:
            return

        self.validate_jwt_configuration()
        self.validate_encryption_configuration()
        self.validate_security_settings()

        logger.info("All startup security validations passed")

    @staticmethod
    def validate_jwt_configuration():
        jwt_secret = getattr(settings, 'JWT_SECRET_KEY', None)

        if not jwt_secret:
            raise ImproperlyConfigured(f"JWT_SECRET_KEY must be set in environment variables. {JWT_KEY_HINT}")

        if len(jwt_secret) < 32:
            raise ImproperlyConfigured(
                f"JWT_SECRET_KEY must be at least 32 characters long. "
                f"Current length: {len(jwt_secret)}. {JWT_KEY_HINT}"
            )

        if jwt_secret == getattr(settings, 'SECRET_KEY', None):
            raise ImproperlyConfigured(f"JWT_SECRET_KEY must be different from SECRET_KEY. {JWT_KEY_HINT}")

        unique_chars = len(set(jwt_secret))
        if unique_chars < 16:
            raise ImproperlyConfigured(
                f"JWT_SECRET_KEY has insufficient entropy. "
                f"Found only {unique_chars} unique characters, need at least 16. {JWT_KEY_HINT}"
            )

        logger.info("JWT configuration validated")

    @staticmethod
    def validate_encryption_configuration():
        from apps.core.encryption import validate_encryption_key

        try:
            validate_encryption_key(getattr(settings, 'ENCRYPTION_KEY', None))
        except ValueError as e:
            raise ImproperlyConfigured(f"ENCRYPTION_KEY is invalid: {e}")

        logger.info("Encryption configuration validated")

    @staticmethod
    def validate_security_settings():
        secret_key = getattr(settings, 'SECRET_KEY', None)

        if not secret_key:
            raise ImproperlyConfigured(
                "SECRET_KEY must be set in environment variables. "
                "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(50))\""
            )

        if not settings.DEBUG:
            weak_patterns = ['change-me', 'insecure', 'django-insecure', 'dev-only']
            secret_lower = secret_key.lower()
            for pattern in weak_patterns:
                if pattern in secret_lower:
                    raise ImproperlyConfigured(
                        f"SECRET_KEY appears to be a default or weak value (contains '{pattern}')."
                    )

        logger.info("Security settings validated")
