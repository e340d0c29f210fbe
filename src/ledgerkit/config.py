"""Runtime settings for report generation and bank reconciliation.

Settings are plain frozen dataclasses. ``from_env`` reads overrides from
``LEDGERKIT_*`` environment variables; anything unset keeps its default.
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

from ledgerkit.domain.errors import ValidationError

DEFAULT_CURRENCY = "CNY"
DEFAULT_DATE_WINDOW_DAYS = 3
DEFAULT_AMOUNT_TOLERANCE = Decimal("0.50")


def _env_decimal(env: Mapping[str, str], name: str) -> Optional[Decimal]:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return Decimal(raw.strip())
    except InvalidOperation as e:
        raise ValidationError(f"{name} must be a decimal number, got '{raw}'") from e


def _env_int(env: Mapping[str, str], name: str) -> Optional[int]:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw.strip())
    except ValueError as e:
        raise ValidationError(f"{name} must be an integer, got '{raw}'") from e


@dataclass(frozen=True)
class ReportSettings:
    """Report generation settings.

    Attributes:
        currency: Currency label put on reports when the chart does not
            dictate one
        income_tax_rate: Optional flat rate applied to positive income before
            tax; None means booked tax expense is used
    """

    currency: str = DEFAULT_CURRENCY
    income_tax_rate: Optional[Decimal] = None

    def __post_init__(self):
        if not self.currency:
            raise ValidationError("Currency cannot be empty")
        if self.income_tax_rate is not None:
            rate = Decimal(str(self.income_tax_rate))
            if not Decimal("0") <= rate <= Decimal("1"):
                raise ValidationError(
                    f"Income tax rate must be between 0 and 1, got {rate}"
                )
            object.__setattr__(self, "income_tax_rate", rate)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ReportSettings":
        env = os.environ if env is None else env
        return cls(
            currency=(env.get("LEDGERKIT_CURRENCY") or DEFAULT_CURRENCY).strip().upper(),
            income_tax_rate=_env_decimal(env, "LEDGERKIT_INCOME_TAX_RATE"),
        )


@dataclass(frozen=True)
class ReconciliationSettings:
    """Bank matching thresholds.

    Attributes:
        date_window_days: Maximum distance in days between bank and ledger
            dates for medium and low confidence matches
        amount_tolerance: Maximum absolute amount difference for a low
            confidence match
    """

    date_window_days: int = DEFAULT_DATE_WINDOW_DAYS
    amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE

    def __post_init__(self):
        if self.date_window_days < 0:
            raise ValidationError("Date window cannot be negative")
        tolerance = Decimal(str(self.amount_tolerance))
        if tolerance < 0:
            raise ValidationError("Amount tolerance cannot be negative")
        object.__setattr__(self, "amount_tolerance", tolerance)

    @classmethod
    def from_env(
        cls, env: Optional[Mapping[str, str]] = None
    ) -> "ReconciliationSettings":
        env = os.environ if env is None else env
        window = _env_int(env, "LEDGERKIT_RECON_DATE_WINDOW_DAYS")
        tolerance = _env_decimal(env, "LEDGERKIT_RECON_AMOUNT_TOLERANCE")
        return cls(
            date_window_days=DEFAULT_DATE_WINDOW_DAYS if window is None else window,
            amount_tolerance=DEFAULT_AMOUNT_TOLERANCE if tolerance is None else tolerance,
        )
