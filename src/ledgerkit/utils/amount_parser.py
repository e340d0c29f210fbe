"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "123.45"
    - "¥123.45"
    - "-123.45"
    - "1,234.56"
    - "(123.45)" (negative in parentheses)
    - "123.45 CR" / "123.45 DR" (bank statement suffixes, DR is negative)

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if amount_str is None or not str(amount_str).strip():
        raise ValueError("Empty amount string")

    amount_str = str(amount_str).strip()

    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    suffix = amount_str[-2:].upper()
    if suffix in ("CR", "DR"):
        is_negative = is_negative or suffix == "DR"
        amount_str = amount_str[:-2]

    amount_str = re.sub(r"[$€£¥]|CNY|RMB", "", amount_str, flags=re.IGNORECASE)
    amount_str = amount_str.replace(",", "").replace(" ", "")

    try:
        amount = Decimal(amount_str)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}'") from e
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")
    return -amount if is_negative else amount
