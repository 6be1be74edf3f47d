"""
Django app configuration for operations.
"""

from django.apps import AppConfig


class OperationsConfig(AppConfig):
    """Configuration for the operations application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "operations"
    verbose_name = "Operations"
