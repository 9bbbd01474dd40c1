"""
Celery configuration for the marketplace.

Two processes run from this module:
- the worker, which executes tasks (payout sweeps, notification emails)
- beat, which owns the periodic timer; schedules live in the database
  (django-celery-beat DatabaseScheduler) and are seeded by data migrations,
  e.g. payments migration 0002 for the payout sweep

Usage:
    celery -A config worker -l info
    celery -A config beat -l info

Tasks are auto-discovered from the tasks.py module of every installed app.
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
