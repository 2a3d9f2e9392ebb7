"""
Formatting helpers for receipts, kitchen cards and API payloads.
Amounts are Indonesian Rupiah: dot as thousands separator, no decimals.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime
from typing import Union


def num_id(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Format a number with Indonesian thousands grouping, rounded to units.

    Examples:
        num_id(25000) -> "25.000"
        num_id(Decimal('1500.5')) -> "1.501"
        num_id(-4000) -> "-4.000"
        num_id(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    sign = "-" if num < 0 else ""
    digits = str(abs(num))

    # Revertir, agrupar de 3, revertir de nuevo
    reversed_int = digits[::-1]
    groups = [reversed_int[i:i+3] for i in range(0, len(reversed_int), 3)]
    return f"{sign}{'.'.join(groups)[::-1]}"


def format_rupiah(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Format an amount as Rupiah.

    Examples:
        format_rupiah(25000) -> "Rp25.000"
        format_rupiah(-4000) -> "-Rp4.000"
    """
    formatted = num_id(value)
    if formatted == "-":
        return formatted
    if formatted.startswith("-"):
        return f"-Rp{formatted[1:]}"
    return f"Rp{formatted}"


def format_duration(ms: Union[int, float]) -> str:
    """Elapsed milliseconds as mm:ss (minutes keep growing past 59)."""
    total_seconds = max(0, int(ms // 1000))
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


def date_id(value: Union[date, datetime, None]) -> str:
    """DD/MM/YYYY, or "-" if missing."""
    if value is None:
        return "-"
    if isinstance(value, datetime):
        value = value.date()
    if not isinstance(value, date):
        return "-"
    return value.strftime("%d/%m/%Y")


def time_id(value: Union[datetime, None]) -> str:
    """24h HH:MM, or "-" if missing."""
    if not isinstance(value, datetime):
        return "-"
    return value.strftime("%H:%M")


def parse_amount(value) -> Decimal:
    """
    Parse an amount typed by an operator ("70000", "70.000", 70000, "70000.50").

    A dot followed by exactly three digits is read as a thousands separator.

    Raises:
        ValueError: if the value is empty, not a number, NaN or Infinity.
    """
    if value is None:
        raise ValueError('Amount is required')
    if isinstance(value, bool):
        raise ValueError(f'Invalid amount: {value}')
    if isinstance(value, (int, Decimal)):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        cleaned = str(value).strip().replace('Rp', '').replace(' ', '')
        if not cleaned:
            raise ValueError('Amount is required')

        parts = cleaned.split('.')
        if len(parts) > 1 and all(len(p) == 3 for p in parts[1:]):
            cleaned = ''.join(parts)
        cleaned = cleaned.replace(',', '.')

        try:
            result = Decimal(cleaned)
        except (InvalidOperation, ValueError):
            raise ValueError(f'Invalid amount: {value}')

    if not result.is_finite():
        raise ValueError(f'Amount must be a finite number: {value}')
    return result
