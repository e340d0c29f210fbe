"""Utility functions for ledgerkit."""

from ledgerkit.utils.date_parser import get_date_range, parse_date
from ledgerkit.utils.amount_parser import parse_amount
from ledgerkit.utils.money import money_sum, quantize, to_decimal

__all__ = [
    "get_date_range",
    "parse_date",
    "parse_amount",
    "money_sum",
    "quantize",
    "to_decimal",
]
