from pathlib import Path
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent


# ==============================================================================
# SECURITY SETTINGS (ENVIRONMENT-BASED)
# ==============================================================================

# Load from .env; fall back to insecure default for development only
SECRET_KEY = os.getenv(
    'DJANGO_SECRET_KEY',
    'django-insecure-3m!q8w@t1x$k4v#p0d2f7r9z&c6b5n8j-y1u_e+h0s4a2g7l'
)

DEBUG = os.getenv('DEBUG', 'True') == 'True'

ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', '*').split(',')

# ==============================================================================
# HTTPS/SSL SECURITY (Production only)
# ==============================================================================
if not DEBUG:
    # Force HTTPS
    SECURE_SSL_REDIRECT = os.getenv('SECURE_SSL_REDIRECT', 'True') == 'True'
    SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

    # Secure cookies
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True

    # HSTS (HTTP Strict Transport Security)
    SECURE_HSTS_SECONDS = 31536000  # 1 year
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_PRELOAD = True

    SECURE_CONTENT_TYPE_NOSNIFF = True
    X_FRAME_OPTIONS = 'DENY'


# ==============================================================================
# APPLICATION CONFIGURATION
# ==============================================================================

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third-party apps
    'storages',  # django-storages for S3/DO Spaces (payment proofs)
    'django_celery_beat',  # Celery beat scheduler

    # Local apps
    'accounts',  # User profiles, roles, cached entitlement summary
    'subscriptions',  # Plans, subscription requests, approvals, invoices
]


MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',  # Serve static files
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'matrimony_site.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'matrimony_site.wsgi.application'


# ==============================================================================
# DATABASE CONFIGURATION
# ==============================================================================
# Supports DATABASE_URL (Railway/Heroku), individual vars, or SQLite

import dj_database_url

DATABASE_URL = os.getenv('DATABASE_URL', '')
DB_ENGINE = os.getenv('DB_ENGINE', 'sqlite3')

if DATABASE_URL:
    DATABASES = {
        'default': dj_database_url.config(
            default=DATABASE_URL,
            conn_max_age=600,
            conn_health_checks=True,
        )
    }
elif DB_ENGINE == 'postgresql':
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.getenv('DB_NAME', 'matrimony'),
            'USER': os.getenv('DB_USER', 'postgres'),
            'PASSWORD': os.getenv('DB_PASSWORD', ''),
            'HOST': os.getenv('DB_HOST', 'localhost'),
            'PORT': os.getenv('DB_PORT', '5432'),
            'CONN_MAX_AGE': 600,  # Connection pooling
            'OPTIONS': {
                'sslmode': os.getenv('DB_SSLMODE', 'prefer'),
            },
        }
    }
else:
    # Default: SQLite for local development
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }


# ==============================================================================
# FILE STORAGE CONFIGURATION
# ==============================================================================
# Local storage for development, S3/R2/DO Spaces for production.
# Payment-proof screenshots are the only user uploads.

STORAGE_TYPE = os.getenv('STORAGE_TYPE', 'local')

if STORAGE_TYPE in ('s3', 'r2'):
    STORAGES = {
        "default": {
            "BACKEND": "storages.backends.s3boto3.S3Boto3Storage",
            "OPTIONS": {
                "access_key": os.getenv('AWS_ACCESS_KEY_ID', ''),
                "secret_key": os.getenv('AWS_SECRET_ACCESS_KEY', ''),
                "bucket_name": os.getenv('AWS_STORAGE_BUCKET_NAME', 'matrimony'),
                "region_name": os.getenv('AWS_S3_REGION_NAME', 'ap-south-1'),
                "endpoint_url": os.getenv('AWS_S3_ENDPOINT_URL', None),
                "default_acl": "private",  # Payment proofs are private
                "file_overwrite": False,
            }
        },
        "staticfiles": {
            "BACKEND": "storages.backends.s3boto3.S3StaticStorage",
            "OPTIONS": {
                "access_key": os.getenv('AWS_ACCESS_KEY_ID', ''),
                "secret_key": os.getenv('AWS_SECRET_ACCESS_KEY', ''),
                "bucket_name": os.getenv('AWS_STORAGE_BUCKET_NAME', 'matrimony'),
                "region_name": os.getenv('AWS_S3_REGION_NAME', 'ap-south-1'),
                "endpoint_url": os.getenv('AWS_S3_ENDPOINT_URL', None),
                "default_acl": "public-read",
            }
        },
    }
    AWS_S3_SIGNATURE_VERSION = 's3v4'
    AWS_QUERYSTRING_AUTH = True  # Signed URLs for private files
    AWS_QUERYSTRING_EXPIRE = 3600  # URLs valid for 1 hour
else:
    MEDIA_URL = '/media/'
    MEDIA_ROOT = BASE_DIR / 'media'

    STORAGES = {
        "default": {
            "BACKEND": "django.core.files.storage.FileSystemStorage",
        },
        "staticfiles": {
            "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage",
        },
    }

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'


# ==============================================================================
# CELERY CONFIGURATION
# ==============================================================================

# For development: Run tasks synchronously without needing Redis
# Set to False in production when a worker and beat are running
CELERY_TASK_ALWAYS_EAGER = os.getenv('CELERY_TASK_ALWAYS_EAGER', 'True').lower() == 'true'
CELERY_TASK_EAGER_PROPAGATES = True  # Propagate exceptions in eager mode

CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', 'redis://localhost:6379/1')

CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = 'UTC'
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 30 * 60  # 30 minutes hard limit
CELERY_TASK_SOFT_TIME_LIMIT = 25 * 60  # 25 minutes soft limit

CELERY_BEAT_SCHEDULER = 'django_celery_beat.schedulers:DatabaseScheduler'

CELERY_TASK_ROUTES = {
    'subscriptions.tasks.*': {'queue': 'subscriptions'},
}


# ==============================================================================
# CACHE & SESSION CONFIGURATION
# ==============================================================================

REDIS_URL = os.getenv('REDIS_URL', '')

if REDIS_URL:
    # Production: Use Redis
    CACHES = {
        'default': {
            'BACKEND': 'django_redis.cache.RedisCache',
            'LOCATION': REDIS_URL,
            'OPTIONS': {
                'CLIENT_CLASS': 'django_redis.client.DefaultClient',
            }
        }
    }
    SESSION_ENGINE = 'django.contrib.sessions.backends.cache'
    SESSION_CACHE_ALIAS = 'default'
else:
    # Development: Use local memory cache
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'unique-snowflake',
        }
    }
    SESSION_ENGINE = 'django.contrib.sessions.backends.db'


# ==============================================================================
# PASSWORD VALIDATION
# ==============================================================================

AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
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


# ==============================================================================
# INTERNATIONALIZATION
# ==============================================================================

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'Asia/Kolkata'  # IST timezone
USE_I18N = True
USE_TZ = True


# ==============================================================================
# LOGGING CONFIGURATION
# ==============================================================================

# Ensure logs directory exists
LOGS_DIR = BASE_DIR / 'logs'
LOGS_DIR.mkdir(exist_ok=True)

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {asctime} {message}',
            'style': '{',
        },
    },
    'filters': {
        'require_debug_true': {
            '()': 'django.utils.log.RequireDebugTrue',
        },
    },
    'handlers': {
        'console': {
            'level': 'DEBUG',
            'filters': ['require_debug_true'],
            'class': 'logging.StreamHandler',
            'formatter': 'simple'
        },
        'file': {
            'level': 'INFO',
            'class': 'logging.FileHandler',
            'filename': LOGS_DIR / 'django.log',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'django': {
            'handlers': ['console', 'file'],
            'level': 'INFO',
        },
        'celery': {
            'handlers': ['console', 'file'],
            'level': 'INFO',
        },
        'subscriptions': {
            'handlers': ['console', 'file'],
            'level': 'DEBUG',
        },
        'accounts': {
            'handlers': ['console', 'file'],
            'level': 'INFO',
        },
    },
}


# ==============================================================================
# DEFAULT PRIMARY KEY
# ==============================================================================

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# ==============================================================================
# AUTHENTICATION SETTINGS
# ==============================================================================

# Session/token issuance lives in the auth service; this app only reads request.user
LOGIN_URL = '/admin/login/'


# ==============================================================================
# SUBSCRIPTION ENTITLEMENTS
# ==============================================================================

DEFAULT_CURRENCY = os.getenv('DEFAULT_CURRENCY', 'INR')

# Extra days of access after end_date before a subscription is expired
SUBSCRIPTION_GRACE_PERIOD_DAYS = int(os.getenv('SUBSCRIPTION_GRACE_PERIOD_DAYS', '7'))

# Allowed difference between upi+cash and the plan price (client-side splitting)
SUBSCRIPTION_AMOUNT_TOLERANCE = os.getenv('SUBSCRIPTION_AMOUNT_TOLERANCE', '1')

# Staged expiry warnings, in days before end_date
SUBSCRIPTION_EXPIRY_WARNING_DAYS = [
    int(d) for d in os.getenv('SUBSCRIPTION_EXPIRY_WARNING_DAYS', '7,3,1').split(',') if d.strip()
]

# Auto-renew requests are spawned for subscriptions ending within this window
SUBSCRIPTION_AUTO_RENEW_WINDOW_HOURS = int(os.getenv('SUBSCRIPTION_AUTO_RENEW_WINDOW_HOURS', '24'))

# Sequential candidates tried before falling back to a timestamp-based number
INVOICE_NUMBER_MAX_ATTEMPTS = int(os.getenv('INVOICE_NUMBER_MAX_ATTEMPTS', '10'))

# Dotted path of the notifier class (resolved once, see subscriptions.notifications)
SUBSCRIPTION_NOTIFIER = os.getenv(
    'SUBSCRIPTION_NOTIFIER',
    'subscriptions.notifications.DatabaseNotifier'
)


# Hours between the extra expiration sweeps (beat schedule in matrimony_site/celery.py)
SUBSCRIPTION_EXPIRY_SWEEP_HOURS = int(os.getenv('SUBSCRIPTION_EXPIRY_SWEEP_HOURS', '4'))
