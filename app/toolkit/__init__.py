"""
Toolkit - Domain-Specific Utilities & Services.

This app provides domain-aware utilities and services:
- EmailService: Centralized email sending with templates and attachments
- Helper functions: PII masking, money formatting

Key components:
    - services/email.py: EmailService class
    - helpers.py: Domain-aware utility functions (mask_email, format_money)

Usage:
    from toolkit.services.email import EmailService
    from toolkit.helpers import format_money, mask_email

Note:
    - This app has no models. It's focused on domain-specific utilities.
    - For generic infrastructure (exceptions, locks, pagination), see core/
"""
