"""Formatting utilities for currency and text display."""

from __future__ import annotations

from typing import Union

import pandas as pd


def format_currency(amount: Union[float, int], include_sign: bool = True) -> str:
    """Format a currency amount with proper formatting.

    Negative amounts keep their sign in front of the dollar sign.

    Args:
        amount: The amount to format
        include_sign: Whether to include the dollar sign

    Returns:
        Formatted currency string (e.g., "$1,234.56" or "1,234.56")

    Example:
        >>> format_currency(1234.56)
        '$1,234.56'
        >>> format_currency(-800)
        '-$800.00'
    """
    formatted = f"{abs(amount):,.2f}"
    sign = '-' if amount < 0 else ''
    return f"{sign}${formatted}" if include_sign else f"{sign}{formatted}"


def escape_dollar_for_markdown(text: str) -> str:
    """Escape dollar signs so Streamlit markdown doesn't read them as LaTeX."""
    return text.replace("$", "\\$")


def month_label(month_key: str) -> str:
    """``2025-10`` -> ``October 2025``."""
    return pd.Period(month_key, freq='M').strftime('%B %Y')
