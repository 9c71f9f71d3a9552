"""
Configurações para o projeto Cali Brasil (API de pedidos).
"""

from decouple import config, Csv
from pathlib import Path
from corsheaders.defaults import default_headers

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent


# ====================================================================
# CONFIGURAÇÕES BÁSICAS
# ====================================================================

# A SECRET_KEY deve ser lida de uma variável de ambiente por segurança.
SECRET_KEY = config('SECRET_KEY', default='django-insecure-default-key-for-development')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = config('DEBUG', default=False, cast=bool)

ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1,testserver', cast=Csv())


# ====================================================================
# APLICAÇÕES INSTALADAS
# ====================================================================

INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.staticfiles',

    # Aplicações de Terceiros (Primeiro)
    'corsheaders',
    'rest_framework',
    'drf_spectacular',
    'rest_framework_simplejwt',

    # Nossas Aplicações
    'calibrasil.infrastructure.apps.InfrastructureConfig', # Models, Repositórios e Gateways
]


# ====================================================================
# MIDDLEWARE E TEMPLATES
# ====================================================================

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'calibrasil.urls'

# Os endpoints seguem os caminhos do frontend, sem barra final
APPEND_SLASH = False

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

WSGI_APPLICATION = 'calibrasil.wsgi.application'


# ====================================================================
# CONFIGURAÇÃO DO BANCO DE DADOS E CACHE
# ====================================================================

DATABASES = {
    'default': {
        'ENGINE': config('DB_ENGINE', default='django.db.backends.sqlite3'),
        'NAME': config('DB_NAME', default=str(BASE_DIR / 'db.sqlite3')),
        'USER': config('DB_USER', default=''),
        'PASSWORD': config('DB_PASSWORD', default=''),
        'HOST': config('DB_HOST', default=''),
        'PORT': config('DB_PORT', default=''),
    }
}

# Usado pelo limitador de taxa quando RATE_LIMIT_BACKEND=cache
CACHES = {
    'default': {
        'BACKEND': config('CACHE_BACKEND', default='django.core.cache.backends.locmem.LocMemCache'),
        'LOCATION': config('CACHE_LOCATION', default='calibrasil'),
    }
}


# ====================================================================
# INTERNACIONALIZAÇÃO
# ====================================================================

LANGUAGE_CODE = 'pt-br'

TIME_ZONE = 'America/Sao_Paulo'

USE_I18N = True

USE_TZ = True


# ====================================================================
# ARQUIVOS ESTÁTICOS
# ====================================================================

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# ====================================================================
# CONFIGURAÇÕES DO DJANGO REST FRAMEWORK (DRF), DOCS E CORS
# ====================================================================

SPECTACULAR_SETTINGS = {
    'TITLE': 'API de Pedidos da Cali Brasil',
    'DESCRIPTION': 'Checkout, confirmação de pedidos e alertas de estoque da Cali Brasil.',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
}

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTAuthentication',
    ),
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
    # Totais saem como número no JSON
    'COERCE_DECIMAL_TO_STRING': False,
}

# A loja chama a API a partir do navegador, de qualquer origem.
CORS_ALLOW_ALL_ORIGINS = True
CORS_ALLOW_HEADERS = (
    *default_headers,
    'x-client-info',
    'apikey',
)


# ====================================================================
# SEGREDOS, LIMITES E REGRAS DE NEGÓCIO
# ====================================================================

# Segredo do HMAC dos links de confirmação. Vazio = servidor mal configurado.
INTERNAL_API_SECRET = config('INTERNAL_API_SECRET', default='')

# Credencial das chamadas serviço-a-serviço (checkout -> alerta de estoque)
SERVICE_ROLE_KEY = config('SERVICE_ROLE_KEY', default='')

# Limitador de taxa: 'memoria' (por processo) ou 'cache' (compartilhado)
RATE_LIMIT_BACKEND = config('RATE_LIMIT_BACKEND', default='memoria')
RATE_LIMIT_WINDOW_SECONDS = config('RATE_LIMIT_WINDOW_SECONDS', default=60, cast=int)
ORDER_RATE_LIMIT = config('ORDER_RATE_LIMIT', default=5, cast=int)
CONFIRMATION_RATE_LIMIT = config('CONFIRMATION_RATE_LIMIT', default=10, cast=int)

# Alerta de estoque baixo: 'local' (no processo) ou 'http' (POST no endpoint)
LOW_STOCK_THRESHOLD = config('LOW_STOCK_THRESHOLD', default=5, cast=int)
LOW_STOCK_NOTIFIER = config('LOW_STOCK_NOTIFIER', default='local')
LOW_STOCK_NOTIFY_URL = config('LOW_STOCK_NOTIFY_URL', default='http://localhost:8000/send-low-stock-email')

SITE_URL = config('SITE_URL', default='https://calibrasil.com')
RECEIPT_TOKEN_TTL_DAYS = config('RECEIPT_TOKEN_TTL_DAYS', default=7, cast=int)


# ====================================================================
# CONFIGURAÇÕES DE SERVIÇOS EXTERNOS (E-mail e Logging)
# ====================================================================

# Resend (e-mails transacionais)
RESEND_API_KEY = config('RESEND_API_KEY', default='')
LOW_STOCK_EMAIL_FROM = config('LOW_STOCK_EMAIL_FROM', default='Cali Brasil <pedidos@calibrasil.com>')
LOW_STOCK_EMAIL_TO = config('LOW_STOCK_EMAIL_TO', default='arthur@calibrasil.com', cast=Csv())
ADMIN_PRODUCTS_URL = config('ADMIN_PRODUCTS_URL', default='https://calibrasil.com/admin/products')


# Configurações de Logging
LOG_LEVEL = config('LOG_LEVEL', default='INFO')
LOG_FILE = config('LOG_FILE', default='')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'console': {
            'level': LOG_LEVEL,
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
            'style': '{',
        },
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': True,
        },
        'calibrasil': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}

if LOG_FILE:
    LOGGING['handlers']['file'] = {
        'level': LOG_LEVEL,
        'class': 'logging.handlers.RotatingFileHandler',
        'filename': LOG_FILE,
        'maxBytes': 1024 * 1024 * 5,  # 5 MB
        'backupCount': 5,
        'formatter': 'verbose',
    }
    for nome_logger in ('django', 'calibrasil'):
        LOGGING['loggers'][nome_logger]['handlers'].append('file')
