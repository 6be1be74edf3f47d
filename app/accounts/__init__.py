"""
Accounts application.

Operating companies (tenants and vehicle-owner companies) and the
email-based users that act on their behalf.

Key components:
    - Company model: Tenant / owner company
    - User model: Custom email-based user attached to a company

Usage:
    from accounts.models import Company, User
"""
