"""
Helper functions for common infrastructure operations.

This module provides domain-agnostic utility functions for:
- UUID validation
- Monetary amount parsing and rounding
- Pagination helpers

These utilities are pure infrastructure - they have no knowledge
of domain concepts like settlements, contracts or vehicles.

Usage:
    from core.helpers import calculate_pagination, parse_money, quantize_money

    pagination = calculate_pagination(total=42, page=2, per_page=10)
    amount = parse_money("500000")
"""

from __future__ import annotations

import math
import uuid
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

MONEY_QUANTUM = Decimal("0.01")


def validate_uuid(value: str) -> bool:
    """
    Check if string is a valid UUID.

    Example:
        is_valid = validate_uuid("550e8400-e29b-41d4-a716-446655440000")  # True
    """
    try:
        uuid.UUID(str(value))
        return True
    except (ValueError, TypeError, AttributeError):
        return False


def quantize_money(value: Decimal) -> Decimal:
    """Round a monetary value to cents using ROUND_HALF_UP."""
    return Decimal(value).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def parse_money(value) -> Decimal | None:
    """
    Convert user input into a monetary Decimal.

    Floats are converted through ``str`` so 0.1 stays 0.1.

    Returns:
        The quantized Decimal, or None if the value is not a finite number
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not amount.is_finite():
        return None
    return quantize_money(amount)


def calculate_pagination(total: int, page: int, per_page: int) -> dict:
    """
    Calculate pagination metadata.

    Args:
        total: Total number of items
        page: Current page number (1-indexed)
        per_page: Items per page

    Returns:
        Dict with pagination metadata

    Example:
        pagination = calculate_pagination(total=100, page=3, per_page=20)
        # {
        #     "total": 100,
        #     "page": 3,
        #     "per_page": 20,
        #     "total_pages": 5,
        #     "has_next": True,
        #     "has_previous": True,
        #     "next_page": 4,
        #     "previous_page": 2,
        #     "start_index": 41,
        #     "end_index": 60
        # }
    """
    total_pages = math.ceil(total / per_page) if per_page > 0 else 0
    page = max(1, min(page, total_pages or 1))

    has_next = page < total_pages
    has_previous = page > 1

    start_index = (page - 1) * per_page + 1 if total > 0 else 0
    end_index = min(page * per_page, total)

    return {
        "total": total,
        "page": page,
        "per_page": per_page,
        "total_pages": total_pages,
        "has_next": has_next,
        "has_previous": has_previous,
        "next_page": page + 1 if has_next else None,
        "previous_page": page - 1 if has_previous else None,
        "start_index": start_index,
        "end_index": end_index,
    }
