"""
Django app configuration for fleet.
"""

from django.apps import AppConfig


class FleetConfig(AppConfig):
    """Configuration for the fleet application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "fleet"
    verbose_name = "Fleet"
