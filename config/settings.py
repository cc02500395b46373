from pathlib import Path
import os
from dotenv import load_dotenv

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent


# === env ===
load_dotenv(BASE_DIR / ".env")
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
DEBUG = os.getenv("DEBUG", "True") == "True"
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost").split(",")


# Application definition

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'core',
    'users.apps.UsersConfig',  # registered via apps.py for the guest-merge signal
    'orders',
    'events',
    'vouchers',
    'loyalty',
    'payments',
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

ROOT_URLCONF = 'config.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
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

WSGI_APPLICATION = 'config.wsgi.application'


# Database
# https://docs.djangoproject.com/en/5.2/ref/settings/#databases

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }
}


# Password validation
# https://docs.djangoproject.com/en/5.2/ref/settings/#auth-password-validators

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


# Internationalization
# https://docs.djangoproject.com/en/5.2/topics/i18n/

LANGUAGE_CODE = 'en-gb'
TIME_ZONE = 'Europe/London'
USE_I18N = True
USE_TZ = True

# --- Site details for emails and links ---
SITE_NAME = os.getenv('SITE_NAME', 'Pages & Peace')
SITE_URL = os.getenv('SITE_URL', 'http://localhost:8000')

# --- Email backend ---
EMAIL_BACKEND = os.getenv('EMAIL_BACKEND', "django.core.mail.backends.smtp.EmailBackend")

EMAIL_HOST = os.getenv('EMAIL_HOST', 'smtp.gmail.com')
EMAIL_PORT = int(os.getenv('EMAIL_PORT', '465'))
EMAIL_HOST_USER = os.getenv('EMAIL_HOST_USER', '')
EMAIL_HOST_PASSWORD = os.getenv('EMAIL_HOST_PASSWORD', '')
EMAIL_USE_SSL = os.getenv('EMAIL_USE_SSL', 'true').lower() == 'true'
EMAIL_USE_TLS = os.getenv('EMAIL_USE_TLS', 'false').lower() == 'true'  # for 587 set TLS true and SSL false

DEFAULT_FROM_EMAIL = os.getenv('DEFAULT_FROM_EMAIL', EMAIL_HOST_USER or 'noreply@localhost')
SERVER_EMAIL = os.getenv('SERVER_EMAIL', DEFAULT_FROM_EMAIL)
BOOKINGS_ADMIN_EMAIL = os.getenv('BOOKINGS_ADMIN_EMAIL', SERVER_EMAIL)

# --- Payment gateway (YooKassa) ---
YOO_KASSA_SHOP_ID = os.getenv('YOO_KASSA_SHOP_ID', '')
YOO_KASSA_SECRET_KEY = os.getenv('YOO_KASSA_SECRET_KEY', '')
YOO_KASSA_RETURN_URL = os.getenv('YOO_KASSA_RETURN_URL', f'{SITE_URL}/payments/return/')
# shared secret the webhook body is signed with (HMAC-SHA256, base64)
PAYMENT_WEBHOOK_SECRET = os.getenv('PAYMENT_WEBHOOK_SECRET', '')
SHOP_CURRENCY = os.getenv('SHOP_CURRENCY', 'GBP')

# --- Business policy ---
CANCELLATION_WINDOW_HOURS = int(os.getenv('CANCELLATION_WINDOW_HOURS', '48'))
SEAT_HOLD_TTL_MINUTES = int(os.getenv('SEAT_HOLD_TTL_MINUTES', '15'))
VOUCHER_MIN_AMOUNT = int(os.getenv('VOUCHER_MIN_AMOUNT', '500'))  # minor units
VOUCHER_VALIDITY_MONTHS = int(os.getenv('VOUCHER_VALIDITY_MONTHS', '24'))
VOUCHER_CODE_PREFIX = os.getenv('VOUCHER_CODE_PREFIX', 'GV')
LOYALTY_JOIN_BONUS = int(os.getenv('LOYALTY_JOIN_BONUS', '50'))
LOYALTY_TERMS_VERSION = os.getenv('LOYALTY_TERMS_VERSION', 'v1.0')
# empty -> idempotency keys never expire
IDEMPOTENCY_KEY_TTL_DAYS = int(os.getenv('IDEMPOTENCY_KEY_TTL_DAYS') or 0) or None

# --- Logging ---
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'plain': {'format': '%(asctime)s %(levelname)s [%(name)s] %(message)s'},
    },
    'handlers': {'console': {'class': 'logging.StreamHandler', 'formatter': 'plain'}},
    'loggers': {
        'core': {'handlers': ['console'], 'level': LOG_LEVEL},
        'mail': {'handlers': ['console'], 'level': LOG_LEVEL},
        'payments': {'handlers': ['console'], 'level': LOG_LEVEL},
        'bookings': {'handlers': ['console'], 'level': LOG_LEVEL},
        'vouchers': {'handlers': ['console'], 'level': LOG_LEVEL},
        'orders': {'handlers': ['console'], 'level': LOG_LEVEL},
        'loyalty': {'handlers': ['console'], 'level': LOG_LEVEL},
    },
}


# Static files (CSS, JavaScript, Images)
# https://docs.djangoproject.com/en/5.2/howto/static-files/

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'    # for collectstatic in production
# Default primary key field type
# https://docs.djangoproject.com/en/5.2/ref/settings/#default-auto-field

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# custom user
AUTH_USER_MODEL = 'users.User'
LOGIN_URL = 'users:login'
