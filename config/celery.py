import os

from celery import Celery
from celery.schedules import crontab  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("slot_booking")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================
# The allocation core never closes auctions on its own; this schedule is the
# external trigger that does it.

app.conf.beat_schedule = {
    # Close auctions whose booked slot is about to start - every hour
    "close-due-auctions": {
        "task": "auctions.close_due_auctions",
        "schedule": crontab(minute=5),
        "options": {"expires": 3000},
    },
}
