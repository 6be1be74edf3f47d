"""
Celery configuration for the back-office application.

Celery runs work that must not block an API request or roll back a
committed transaction:
- Settlement delivery: render the PDF and email it to the vehicle owner
  (settlements.tasks.deliver_settlement)

This configuration uses Redis as both the message broker and result backend.
Tasks are auto-discovered from all installed Django apps.

Usage:
    # Queued after the approving transaction commits:
    transaction.on_commit(lambda: deliver_settlement.delay(delivery_id))

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Celery will look for a tasks.py module in each installed app
app.autodiscover_tasks()
