"""
Django settings for bankflow project.

Every deployment-specific value is read from the environment so the same
module serves development, CI and production.
"""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    """Read a boolean flag from the environment ('1', 'true', 'yes', 'on')."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


SECRET_KEY = os.environ.get(
    'DJANGO_SECRET_KEY',
    'django-insecure-bankflow-development-key-change-me',
)

DEBUG = env_bool('DJANGO_DEBUG', False)

ALLOWED_HOSTS = [
    host.strip()
    for host in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',')
    if host.strip()
]

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'quickbooks',
    'bank_rules',
    'bank_entries',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'bankflow.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'bankflow.wsgi.application'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.environ.get('DATABASE_PATH', str(BASE_DIR / 'db.sqlite3')),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'

# QuickBooks Online integration
QBO_CLIENT_ID = os.environ.get('QBO_CLIENT_ID', 'PLACEHOLDER')
QBO_CLIENT_SECRET = os.environ.get('QBO_CLIENT_SECRET', 'PLACEHOLDER')
QBO_ENVIRONMENT = os.environ.get('QBO_ENVIRONMENT', 'sandbox')
QBO_REDIRECT_URI = os.environ.get(
    'QBO_REDIRECT_URI', 'http://localhost:8000/api/auth/callback'
)
QBO_MINOR_VERSION = int(os.environ.get('QBO_MINOR_VERSION', '65'))
QBO_HTTP_TIMEOUT = float(os.environ.get('QBO_HTTP_TIMEOUT', '30'))
QBO_POST_CONNECT_REDIRECT = os.environ.get('QBO_POST_CONNECT_REDIRECT', '/')

# Feature flag - rule classification can be switched off without touching posting
BANK_RULES_ENABLED = env_bool('BANK_RULES_ENABLED', True)

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '[%(asctime)s: %(levelname)s/%(name)s] %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'bank_rules': {'handlers': ['console'], 'level': 'INFO', 'propagate': False},
        'bank_entries': {'handlers': ['console'], 'level': 'INFO', 'propagate': False},
        'quickbooks': {'handlers': ['console'], 'level': 'INFO', 'propagate': False},
        'httpx': {'handlers': ['console'], 'level': 'WARNING', 'propagate': False},
        'httpcore': {'handlers': ['console'], 'level': 'WARNING', 'propagate': False},
    },
}
