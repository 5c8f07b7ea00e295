"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re

CURRENCY_SYMBOLS = re.compile(r"[$€£¥]|\bEUR\b", re.IGNORECASE)


def parse_amount(amount_str: str, decimal_separator: str = ".") -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "123.45", "-123.45", "€123.45"
    - "1,234.56" (comma thousands separator)
    - "1.234,56" and "-150,00" (Belgian bank exports)
    - "(123.45)" (negative in parentheses)

    When both separators appear, the last one is the decimal separator.
    A lone comma is a decimal separator only if ``decimal_separator`` is ",".

    Args:
        amount_str: Amount string
        decimal_separator: Decimal separator used by the source

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    amount_str = amount_str.strip()

    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    cleaned = CURRENCY_SYMBOLS.sub("", amount_str)
    cleaned = re.sub(r"[\s ']", "", cleaned)

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        if decimal_separator == ",":
            cleaned = cleaned.replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"Could not parse amount '{amount_str}'")
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")
    return -amount if is_negative else amount
