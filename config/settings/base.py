"""Base settings for all environments.

This configuration file defines the common settings used by every
environment of the slot booking core. It follows Django's standard
configuration structure and integrates third-party packages such as
Django Rest Framework (snapshot serializers), Celery (externally triggered
auction closing) and structlog (JSON log rendering). Environment-specific
overrides live in `dev.py`, `prod.py` and `test.py`.

The allocation core itself is configured through three dictionaries at the
bottom of this module: ``BOOKING_RULES``, ``SLOT_QUOTAS`` and ``FAIRNESS``.
They are turned into immutable config objects when the handlers are built;
the domain layer never reads settings directly.
"""

import os
from pathlib import Path

import structlog

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'replace-me-in-production')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = False

ALLOWED_HOSTS: list[str] = os.environ.get('DJANGO_ALLOWED_HOSTS', '*').split(',')

# Application definition

INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    # Third-party apps
    'rest_framework',
    # Domain apps
    'apps.assets',
    'apps.bookings',
    'apps.auctions',
]

# Database

DATABASES = {
    'default': {
        'ENGINE': os.environ.get('DB_ENGINE', 'django.db.backends.sqlite3'),
        'NAME': os.environ.get('DB_NAME', BASE_DIR / 'db.sqlite3'),
        'USER': os.environ.get('DB_USER', ''),
        'PASSWORD': os.environ.get('DB_PASSWORD', ''),
        'HOST': os.environ.get('DB_HOST', ''),
        'PORT': os.environ.get('DB_PORT', ''),
    }
}

# Internationalization

LANGUAGE_CODE = 'en-us'

# Business-hours restrictions on monetization bids are evaluated in this zone.
TIME_ZONE = os.environ.get('DJANGO_TIME_ZONE', 'Asia/Kolkata')

USE_I18N = True

USE_TZ = True

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Django Rest Framework (serializers only; routing lives outside the core)
REST_FRAMEWORK = {
    'COERCE_DECIMAL_TO_STRING': False,
}

# Celery configuration (Broker and Result backend handled in environment)
CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.environ.get('CELERY_RESULT_BACKEND', 'redis://localhost:6379/0')

# Active auctions are closed this many days before the booked slot starts.
AUCTION_CLOSE_LEAD_DAYS = int(os.environ.get('AUCTION_CLOSE_LEAD_DAYS', 1))

# ============================================================================
# ALLOCATION CORE
# ============================================================================

# Temporal rules applied to every candidate booking, in evaluation order.
BOOKING_RULES = {
    'max_days_per_booking': {'enabled': True, 'max_days': 7},
    'no_consecutive_same_asset_lob': {
        'enabled': True,
        # Primary assets may be backfilled by monetization without a gap.
        'exempt': [{'asset_level': 'primary', 'lob': 'Monetization'}],
    },
    'rolling_window_quota': {'enabled': True, 'window_days': 30, 'max_days': 14},
    'min_lead_time': {'enabled': True, 'days': 3, 'allow_immediate_for_reschedule': True},
    'cooldown_period': {'enabled': True, 'days': 3},
    'concurrent_booking_cap': {'enabled': True, 'max_active': 2},
    'blackout_dates': {
        'enabled': True,
        'dates': os.environ.get('BOOKING_BLACKOUT_DATES', '2024-12-25,2025-12-25').split(','),
    },
    'percentage_share_cap': {
        'enabled': True,
        'percent': 0.40,
        'monetization_lob': 'Monetization',
        'monetization_level_caps': {'primary': 0.20, 'secondary': 0.15, 'tertiary': 0.10},
    },
    'purpose_duplication': {'enabled': True, 'window_days': 30},
    'asset_type_exclusivity': {
        'enabled': True,
        'allowed': {},
    },
}

# Demand-class quotas per asset level and bid caps per class.
SLOT_QUOTAS = {
    'monetization_lob': 'Monetization',
    'external_lobs': [
        lob for lob in os.environ.get('EXTERNAL_LOBS', '').split(',') if lob
    ],
    'level_defaults': {
        'primary': {'internal': 0.60, 'external': 0.40, 'monetization': 0.20},
        'secondary': {'internal': 0.70, 'external': 0.30, 'monetization': 0.15},
        'tertiary': {'internal': 0.80, 'external': 0.20, 'monetization': 0.10},
    },
    'max_bid_multipliers': {'internal': 2.0, 'external': 1.5, 'monetization': 1.2},
    'time_restrictions': {'internal': 'none', 'external': 'none', 'monetization': 'business_hours'},
    'business_hours': {'start': 9, 'end': 18},
}

# Fairness scoring of contested bids.
FAIRNESS = {
    'roi_cap': 2.0,
    'window_days': 30,
    'time_fairness_cap': 2.0,
    'time_decay_factor': 0.1,
    'fairness_bonus': 0.3,
    'revenue_floor': 1.5,
    'class_weights': {'internal': 1.4, 'external': 1.0},
    'roi_metrics': {
        'Monetization': {'type': 'immediate_revenue', 'metric': 'revenue_per_day', 'target': 1000},
        'AI Bot': {'type': 'engagement', 'metric': 'user_interactions', 'target': 1000},
        'Lab Test': {'type': 'conversion', 'metric': 'bookings', 'target': 50},
        'Diagnostics': {'type': 'conversion', 'metric': 'test_bookings', 'target': 50},
        'Pharmacy': {'type': 'revenue', 'metric': 'revenue_per_day', 'target': 800},
    },
}

# ============================================================================
# LOGGING
# ============================================================================

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "()": "structlog.stdlib.ProcessorFormatter",
            "processor": structlog.processors.JSONRenderer(),
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "level": "DEBUG",
        }
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "apps": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "shared": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}
