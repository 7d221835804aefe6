import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

# .env lives at the repository root, one level above django_app/
load_dotenv(BASE_DIR.parent / '.env')


def env_bool(name, default=False):
    return os.environ.get(name, str(default)).lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "insecure-dev-key-change-me")
DEBUG = env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [h for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h]

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'matching',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
]

ROOT_URLCONF = 'facer.urls'
WSGI_APPLICATION = 'facer.wsgi.application'

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

# PostgreSQL with the pgvector extension (CREATE EXTENSION runs in the first migration)
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': os.environ.get("DB_NAME", "facer_db"),
        'USER': os.environ.get("DB_USER", "postgres"),
        'PASSWORD': os.environ.get("DB_PASSWORD", ""),
        'HOST': os.environ.get("DB_HOST", "localhost"),
        'PORT': os.environ.get("DB_PORT", "5432"),
        'CONN_MAX_AGE': int(os.environ.get("DB_CONN_MAX_AGE", "60")),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.environ.get("TZ", "UTC")
USE_TZ = True

STATIC_URL = 'static/'
MEDIA_ROOT = os.environ.get("MEDIA_ROOT", str(BASE_DIR / "media"))
MEDIA_URL = 'media/'

# Embedding service (external inference server returning 512-dim face vectors)
FACER_EMBEDDING_SERVICE_URL = os.environ.get("FACER_EMBEDDING_SERVICE_URL", "http://localhost:5000/embed")
FACER_EMBEDDING_TIMEOUT = float(os.environ.get("FACER_EMBEDDING_TIMEOUT", "10"))
FACER_EMBEDDING_RETRIES = int(os.environ.get("FACER_EMBEDDING_RETRIES", "3"))
FACER_EMBEDDING_BACKOFF = float(os.environ.get("FACER_EMBEDDING_BACKOFF", "0.5"))

# Contest status gating; both off keeps entries and ranking open in every status
FACER_ENTRY_REQUIRES_ACTIVE = env_bool("FACER_ENTRY_REQUIRES_ACTIVE", False)
FACER_RANKING_REQUIRES_CLOSED = env_bool("FACER_RANKING_REQUIRES_CLOSED", False)

FACER_NEAREST_DEFAULT_K = int(os.environ.get("FACER_NEAREST_DEFAULT_K", "5"))
FACER_NEAREST_MAX_K = int(os.environ.get("FACER_NEAREST_MAX_K", "50"))

FACER_LOG_LEVEL = os.environ.get("FACER_LOG_LEVEL", "INFO").upper()

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s %(levelname)s [%(name)s] %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'matching': {
            'handlers': ['console'],
            'level': FACER_LOG_LEVEL,
            'propagate': False,
        },
    },
}
