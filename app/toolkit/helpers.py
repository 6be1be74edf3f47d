"""
Helper functions for domain-specific operations.

This module provides domain-aware utility functions for:
- Data masking (email - PII handling in logs)
- Money formatting for documents and emails

Usage:
    from toolkit.helpers import format_money, mask_email

    masked = mask_email("owner@example.com")  # o***@example.com
    label = format_money(Decimal("1234567.5"))  # "$ 1.234.567,50"

Note:
    - For generic infrastructure helpers (UUID validation, money parsing,
      pagination), see core.helpers
"""

from __future__ import annotations

from decimal import Decimal

from core.helpers import quantize_money


def mask_email(email: str) -> str:
    """
    Mask email for display.

    Keeps first character, domain, and TLD visible.

    Args:
        email: Email address to mask

    Returns:
        Masked email (e.g., "j***@example.com")

    Example:
        masked = mask_email("john.doe@example.com")  # "j***@example.com"
    """
    if not email or "@" not in email:
        return "***"

    local, domain = email.rsplit("@", 1)

    if len(local) > 1:
        masked_local = local[0] + "***"
    else:
        masked_local = "***"

    return f"{masked_local}@{domain}"


def format_money(value: Decimal | int | None, symbol: str = "$") -> str:
    """
    Format an amount with dot thousands and comma decimals.

    Example:
        format_money(Decimal("-1500.5"))  # "-$ 1.500,50"
    """
    amount = quantize_money(Decimal(value or 0))
    sign = "-" if amount < 0 else ""
    integer, _, cents = f"{abs(amount):,.2f}".partition(".")
    return f"{sign}{symbol} {integer.replace(',', '.')},{cents}"
