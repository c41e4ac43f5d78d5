"""Top-level package for Django configuration.

This package exposes application configuration for the slot booking core.
It contains settings modules for different environments and the Celery
application.
"""

# Import the Celery application as soon as Django starts. Without this
# the shared task registry will not be populated.
from .celery import app as celery_app  # noqa: F401
