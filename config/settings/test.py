"""Test settings for the slot booking core.

In-memory SQLite, eager Celery and a fixed blackout calendar so that the
test-suite does not depend on the environment.
"""

from .base import *  # noqa: F401,F403

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

TIME_ZONE = 'UTC'

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

BOOKING_RULES['blackout_dates']['dates'] = ['2024-12-25']  # noqa: F405
SLOT_QUOTAS['external_lobs'] = ['Partner Ads']  # noqa: F405

LOGGING['loggers']['apps']['level'] = 'WARNING'  # noqa: F405
LOGGING['loggers']['shared']['level'] = 'WARNING'  # noqa: F405
