from pathlib import Path
import environ

# Base do projeto
BASE_DIR = Path(__file__).resolve().parent.parent

# Carrega variáveis do .env
env = environ.Env()
environ.Env.read_env(BASE_DIR / '.env')

# Segurança
SECRET_KEY = env('SECRET_KEY', default='django-insecure-tvde-fleet-change-me')
DEBUG = env.bool('DEBUG', default=False)
ALLOWED_HOSTS = env.list('ALLOWED_HOSTS', default=[])
CSRF_TRUSTED_ORIGINS = env.list('CSRF_TRUSTED_ORIGINS', default=[])

if DEBUG:
    for host in ('localhost', '127.0.0.1', 'testserver'):
        if host not in ALLOWED_HOSTS:
            ALLOWED_HOSTS.append(host)

# Apps
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',  # Django REST Framework
    'drivers_app',
    'settlements',
    'system_config',  # Configurações financeiras
]

# Middleware
MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

# URL config
ROOT_URLCONF = 'tvde_fleet.urls'

# Templates (apenas para o admin do Django)
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

WSGI_APPLICATION = 'tvde_fleet.wsgi.application'

# Banco de dados (DATABASE_URL no .env; sqlite local por omissão)
DATABASES = {
    'default': env.db('DATABASE_URL', default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}

# Idioma e timezone
LANGUAGE_CODE = 'pt-pt'
TIME_ZONE = 'Europe/Lisbon'
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# Campo padrão de chave primária
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Cache: Redis quando REDIS_URL estiver definido, memória local caso contrário
REDIS_URL = env('REDIS_URL', default='')

if REDIS_URL:
    CACHES = {
        'default': {
            'BACKEND': 'django_redis.cache.RedisCache',
            'LOCATION': REDIS_URL,
            'OPTIONS': {
                'CLIENT_CLASS': 'django_redis.client.DefaultClient',
            },
            'KEY_PREFIX': 'tvde',
            'TIMEOUT': 300,  # 5 minutos
        }
    }
else:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'tvde-fleet',
        }
    }

# Django REST Framework
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_PAGINATION_CLASS': 'rest_framework.pagination.PageNumberPagination',
    'PAGE_SIZE': 100,
}

# Acertos semanais: valores por omissão quando a configuração financeira
# não está disponível na base de dados
SETTLEMENTS = {
    'VAT_PERCENT': env('SETTLEMENTS_VAT_PERCENT', default='6'),
    'ADMIN_FEE_PERCENT': env('SETTLEMENTS_ADMIN_FEE_PERCENT', default='7'),
    'ADMIN_FEE_FIXED_DEFAULT': env('SETTLEMENTS_ADMIN_FEE_FIXED_DEFAULT', default='25'),
    'REFERRAL_BONUS_AMOUNT': env('SETTLEMENTS_REFERRAL_BONUS_AMOUNT', default='25'),
    'REFERRAL_MIN_WEEKS': env.int('SETTLEMENTS_REFERRAL_MIN_WEEKS', default=4),
    'CONFIG_CACHE_TTL': env.int('SETTLEMENTS_CONFIG_CACHE_TTL', default=300),
}

# Logging
LOG_LEVEL = env('LOG_LEVEL', default='INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {message}',
            'style': '{',
        },
        'settlement_format': {
            'format': '[{asctime}] {levelname} - {name} - {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'level': 'DEBUG',
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
        'settlement_console': {
            'level': 'DEBUG',
            'class': 'logging.StreamHandler',
            'formatter': 'settlement_format',
        },
    },
    'loggers': {
        'settlements': {
            'handlers': ['settlement_console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'drivers_app': {
            'handlers': ['settlement_console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'system_config': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': True,
        },
    },
}
