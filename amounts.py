from decimal import Decimal, ROUND_HALF_UP

from accounts import AccountKind

CENT = Decimal("0.01")
ZERO = Decimal("0")

_NEGATED_KINDS = frozenset({AccountKind.income, AccountKind.liabilities})


def normalize_quantity(mantissa: int, scale: int) -> Decimal:
    """Turn hledger's fixed-point ``(mantissa, places)`` pair into a Decimal.

    The result is exact; rounding happens only when a report emits a value.
    """
    return Decimal(mantissa).scaleb(-scale)


def display_amount(kind: AccountKind, raw: Decimal) -> Decimal:
    """Apply the ledger sign convention for display.

    hledger reports income and liabilities as negative numbers, so those are
    flipped; expenses and assets keep their raw sign.
    """
    if kind in _NEGATED_KINDS:
        return -raw
    return raw


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, base: Decimal) -> Decimal:
    if not base:
        return ZERO
    return amount / base * 100
