"""
WSGI config for the marketplace API.

Served by gunicorn in deployment; the Celery worker and beat processes
load Django through config.celery instead.

This file exposes the WSGI callable as a module-level variable named `application`.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
