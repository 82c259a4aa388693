"""
Django settings for the Teamflow project coordination API.
"""
import os
from pathlib import Path
import environ
import sentry_sdk
from sentry_sdk.integrations.django import DjangoIntegration

# Build paths inside the project
BASE_DIR = Path(__file__).resolve().parent.parent

# Initialize environment variables
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, ['localhost', '127.0.0.1', 'testserver']),
    DB_CONN_MAX_AGE=(int, 600),
    DB_CONNECT_TIMEOUT=(int, 10),
    DB_STATEMENT_TIMEOUT_MS=(int, 15000),
    RATE_LIMIT_ENABLED=(bool, True),
    JSON_LOGS=(bool, False),
    LOG_LEVEL=(str, 'INFO'),
    IDENTIFIER_MAX_RETRIES=(int, 5),
)

# Read .env file if it exists
environ.Env.read_env(os.path.join(BASE_DIR, '.env'))

# SECURITY WARNING: keep the secret key used in production secret!
# The default is rejected at startup unless DEBUG is on.
SECRET_KEY = env('SECRET_KEY', default='django-insecure-dev-only-7q3v9x2m8k4p1z6w5r0t')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env('DEBUG')

ALLOWED_HOSTS = env('ALLOWED_HOSTS')

SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

# Application definition
INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',

    # Third-party apps
    'rest_framework',
    'drf_spectacular',
    'corsheaders',
    'django_ratelimit',

    # Teamflow apps
    'apps.core',
    'apps.accounts',
    'apps.projects',
]

MIDDLEWARE = [
    'apps.core.middleware.RequestIDMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'config.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
            ],
        },
    },
]

WSGI_APPLICATION = 'config.wsgi.application'

# Database
DATABASES = {
    'default': env.db('DATABASE_URL', default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}
DATABASES['default']['CONN_MAX_AGE'] = env('DB_CONN_MAX_AGE')

# Bound every store call so a stalled database surfaces as a transient error
if 'postgresql' in DATABASES['default']['ENGINE']:
    DATABASES['default']['OPTIONS'] = {
        'connect_timeout': env('DB_CONNECT_TIMEOUT'),
        'options': f"-c statement_timeout={env('DB_STATEMENT_TIMEOUT_MS')}",
    }
elif 'sqlite' in DATABASES['default']['ENGINE']:
    DATABASES['default']['OPTIONS'] = {
        'timeout': env('DB_CONNECT_TIMEOUT'),
    }

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Custom User Model
# Accounts carry prefixed string ids (User-00001) and an account class
AUTH_USER_MODEL = 'accounts.User'

# REST Framework
REST_FRAMEWORK = {
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'apps.core.authentication.JWTAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'apps.core.permissions.HasOperationAccess',
    ],
    'UNAUTHENTICATED_USER': None,
    'EXCEPTION_HANDLER': 'apps.core.exceptions.custom_exception_handler',
}

# DRF Spectacular (OpenAPI)
SPECTACULAR_SETTINGS = {
    'TITLE': 'Teamflow API',
    'DESCRIPTION': '''
Project, team and task coordination with role-based access.

## Authentication

Requests authenticate with the token returned by `/v1/auth/login`, either as
`Authorization: Bearer <token>` or through the `token` cookie set at login.

## Roles

| Role | How it is obtained |
|------|--------------------|
| Admin | Stored account class |
| ProjectManager | Stored account class, granted by an Admin |
| TeamLeader | Listed as leader of at least one team |
| TeamMember | Listed as member of at least one team |
| TeamLeaderAndMember | Both of the above |
| User | Any other account |

Team roles are derived from team membership on every request and are never stored.

## Batch operations

Account updates and deletions process each id independently. When any item
fails the response is `207 Multi-Status` with a per-item result list.
    ''',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
    'COMPONENT_SPLIT_REQUEST': True,
    'SCHEMA_PATH_PREFIX': r'/v1/',
    'SECURITY': [
        {
            'JWTAuth': []
        }
    ],
    'APPEND_COMPONENTS': {
        'securitySchemes': {
            'JWTAuth': {
                'type': 'http',
                'scheme': 'bearer',
                'bearerFormat': 'JWT',
                'description': 'JWT token obtained from /v1/auth/login. Include as: Authorization: Bearer <token>.',
            }
        }
    },
    'TAGS': [
        {'name': 'Authentication', 'description': 'Registration, login, session status and profile'},
        {'name': 'Administration', 'description': 'Account listing, batch updates, deletion and promotion'},
        {'name': 'Teams', 'description': 'Team management for project managers'},
        {'name': 'Projects', 'description': 'Projects and their assignment to teams'},
        {'name': 'Tasks', 'description': 'Task creation, submission and review within teams'},
        {'name': 'Operations', 'description': 'Health checks'},
    ],
}

# ============================================================================
# SECURITY SETTINGS
# ============================================================================

if not DEBUG:
    SECURE_SSL_REDIRECT = env.bool('SECURE_SSL_REDIRECT', default=False)
    SECURE_HSTS_SECONDS = 31536000  # 1 year
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    CSRF_COOKIE_SECURE = True
else:
    SECURE_SSL_REDIRECT = False
    SECURE_HSTS_SECONDS = 0
    CSRF_COOKIE_SECURE = False

SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'DENY'

# CORS Configuration
CORS_ALLOW_ALL_ORIGINS = DEBUG
CORS_ALLOWED_ORIGINS = env.list('CORS_ALLOWED_ORIGINS', default=[])
CORS_ALLOW_CREDENTIALS = True
CORS_EXPOSE_HEADERS = ['x-request-id']
CORS_ALLOW_HEADERS = [
    'accept',
    'accept-encoding',
    'authorization',
    'content-type',
    'origin',
    'user-agent',
    'x-requested-with',
    'x-request-id',
]

# Cache: Redis when configured, process-local otherwise
REDIS_URL = env('REDIS_URL', default=None)

if REDIS_URL:
    CACHES = {
        'default': {
            'BACKEND': 'django_redis.cache.RedisCache',
            'LOCATION': REDIS_URL,
            'OPTIONS': {
                'CLIENT_CLASS': 'django_redis.client.DefaultClient',
                'SOCKET_CONNECT_TIMEOUT': 5,
                'SOCKET_TIMEOUT': 5,
                'CONNECTION_POOL_KWARGS': {
                    'max_connections': 50,
                    'retry_on_timeout': True,
                },
            },
            'KEY_PREFIX': 'teamflow',
            'TIMEOUT': 300,
        }
    }
else:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'teamflow',
        }
    }

# Encryption (base64 of 32 random bytes)
# The default is for local development only.
ENCRYPTION_KEY = env('ENCRYPTION_KEY', default='s6Ck4nBq4ArXDYl/lG1JpCAcz9kfgTunrHiiC7nNHo0=')
# Support for key rotation - old keys used for decryption only
ENCRYPTION_OLD_KEYS = env.list('ENCRYPTION_OLD_KEYS', default=[])

# Rate Limiting
RATE_LIMIT_ENABLED = env('RATE_LIMIT_ENABLED')

# Django-ratelimit configuration
RATELIMIT_USE_CACHE = 'default'
RATELIMIT_ENABLE = RATE_LIMIT_ENABLED

# Use custom view for rate limit responses (returns 429 instead of 403)
RATELIMIT_VIEW = 'apps.core.exceptions.ratelimit_view'

# LocMem is process-local; a shared Redis cache is used whenever REDIS_URL is set
SILENCED_SYSTEM_CHECKS = ['django_ratelimit.E003', 'django_ratelimit.W001']

# Identifier allocation
IDENTIFIER_MAX_RETRIES = env('IDENTIFIER_MAX_RETRIES')

# Logging Configuration
LOG_LEVEL = env('LOG_LEVEL')
JSON_LOGS = env('JSON_LOGS')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'json': {
            '()': 'apps.core.logging.JSONFormatter',
        },
        'verbose': {
            '()': 'apps.core.log_sanitizer.SanitizingFormatter',
            'format': '{levelname} {asctime} {module} {request_id} {message}',
            'style': '{',
        },
    },
    'filters': {
        'sanitize': {
            '()': 'apps.core.log_sanitizer.SanitizingFilter',
        },
        'request_id': {
            '()': 'apps.core.middleware.RequestIDLogFilter',
        },
    },
    'handlers': {
        'console': {
            'level': LOG_LEVEL,
            'class': 'logging.StreamHandler',
            'formatter': 'json' if JSON_LOGS else 'verbose',
            'filters': ['request_id', 'sanitize'],
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'apps': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'security': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}

# Sentry Configuration
SENTRY_DSN = env('SENTRY_DSN', default=None)
SENTRY_ENVIRONMENT = env('SENTRY_ENVIRONMENT', default='development')
SENTRY_RELEASE = env('SENTRY_RELEASE', default=None)

if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[
            DjangoIntegration(),
        ],
        environment=SENTRY_ENVIRONMENT,
        release=SENTRY_RELEASE,
        traces_sample_rate=0.1 if not DEBUG else 1.0,
        send_default_pii=False,
        attach_stacktrace=True,
        max_breadcrumbs=50,
    )

# JWT Authentication Configuration
# SECURITY: JWT_SECRET_KEY must differ from SECRET_KEY; CoreConfig validates it at startup.
# The default is for local development only.
JWT_SECRET_KEY = env('JWT_SECRET_KEY', default='NPnKfLKXli0iebbvT8FduIB938PY4cZPP5ZeT9CQFDGFc2Q19DmQbA')
JWT_ALGORITHM = env('JWT_ALGORITHM', default='HS256')
JWT_EXPIRATION_HOURS = env.int('JWT_EXPIRATION_HOURS', default=24)

# Session cookie carrying the JWT, set at login
AUTH_COOKIE_NAME = env('AUTH_COOKIE_NAME', default='token')
AUTH_COOKIE_SECURE = env.bool('AUTH_COOKIE_SECURE', default=not DEBUG)
AUTH_COOKIE_SAMESITE = env('AUTH_COOKIE_SAMESITE', default='Lax')
