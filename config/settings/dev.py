"""Development settings for the slot booking core.

This module extends the base settings with development specific
configuration, such as enabling debug and verbose logging of the rule
engine. Do not use these settings in production!
"""

from .base import *  # noqa: F401,F403

# Enable debug mode for development
DEBUG = True

# Allow all hosts in development
ALLOWED_HOSTS = ['*']

# Per-rule outcomes are logged at DEBUG
LOGGING['loggers']['apps']['level'] = 'DEBUG'  # noqa: F405
