"""
Money engine.

All amounts are integer cents. Percentages are applied with ``Decimal``
so 0.07 means exactly seven percent, and every intermediate product is
rounded to a whole cent (half away from zero) before the next step.

Example::

    >>> compute_fees(10000).as_dict()
    {'base_cents': 10000, 'service_fee': 700, 'surcharge': 39,
     'app_fee_from_base': 1000, 'owner_payout': 9000,
     'total_to_customer': 10739}
"""

import re
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal

from .exceptions import AmountParseError

DEFAULT_SERVICE_FEE_PCT = Decimal('0.07')
DEFAULT_STRIPE_PCT = Decimal('0')
DEFAULT_STRIPE_FIXED_CENTS = 39

# Platform share withheld from the rental base
APP_FEE_PCT = Decimal('0.10')
OWNER_SHARE_PCT = Decimal('0.90')


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.07 from becoming 0.07000000000000000666
    return Decimal(str(value))


def round_cents(value) -> int:
    """Round to a whole cent, half away from zero."""
    return int(_as_decimal(value).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class FeeBreakdown:
    base_cents: int
    service_fee: int
    surcharge: int
    app_fee_from_base: int
    owner_payout: int
    total_to_customer: int

    def as_dict(self) -> dict:
        return asdict(self)


def compute_fees(
    base_cents: int,
    service_fee_pct=DEFAULT_SERVICE_FEE_PCT,
    stripe_pct=DEFAULT_STRIPE_PCT,
    stripe_fixed_cents: int = DEFAULT_STRIPE_FIXED_CENTS,
) -> FeeBreakdown:
    """
    Compute the fee breakdown for a rental base amount.

    Fractional bases (``float`` or ``Decimal``) are rounded to a whole
    cent first. Non-numeric, non-finite or negative bases are treated as
    zero; the fixed processor surcharge still applies, so a zero base
    costs the customer ``stripe_fixed_cents``.
    """
    if isinstance(base_cents, bool) or not isinstance(base_cents, (int, float, Decimal)):
        base_cents = 0
    elif not _as_decimal(base_cents).is_finite():
        base_cents = 0
    base = max(0, round_cents(base_cents))

    service_fee = round_cents(base * _as_decimal(service_fee_pct))
    surcharge = round_cents((base + service_fee) * _as_decimal(stripe_pct)) + stripe_fixed_cents
    app_fee_from_base = round_cents(base * APP_FEE_PCT)
    owner_payout = round_cents(base * OWNER_SHARE_PCT)

    return FeeBreakdown(
        base_cents=base,
        service_fee=service_fee,
        surcharge=surcharge,
        app_fee_from_base=app_fee_from_base,
        owner_payout=owner_payout,
        total_to_customer=base + service_fee + surcharge,
    )


def compute_payout_split(amount_total_cents: int) -> tuple:
    """Split a captured total into ``(platform_fee, transfer_amount)``."""
    total = max(0, int(amount_total_cents or 0))
    platform_fee = round_cents(total * APP_FEE_PCT)
    return platform_fee, total - platform_fee


# =============================================================================
# Display amount parsing
# =============================================================================

_CURRENCY_PREFIX = re.compile(r'^(?:R\$|\$)\s*')
_AMOUNT_CHARS = re.compile(r'^[0-9.,]+$')


def _grouped(integer_part: str, separator: str) -> bool:
    """True when ``integer_part`` is plain digits or digits grouped by three."""
    if integer_part.isdigit():
        return True
    pattern = r'^\d{1,3}(?:%s\d{3})+$' % re.escape(separator)
    return re.match(pattern, integer_part) is not None


def parse_to_cents(text) -> int:
    """
    Parse a display amount such as ``"R$ 1.234,56"`` or ``"12.50"`` into cents.

    Accepted forms: an optional ``R$``/``$`` prefix, digits with optional
    thousands grouping, and a decimal part of one or two digits after the
    last separator. Either ``,`` or ``.`` may be the decimal separator.

    Anything that cannot be read one way only raises ``AmountParseError``,
    including ``"1.234"`` (one thousand or one point two?) and negatives.
    """
    if not isinstance(text, str):
        raise AmountParseError(f'Amount must be text, got {type(text).__name__}')

    raw = _CURRENCY_PREFIX.sub('', text.strip()).replace(' ', '')
    if not raw or not _AMOUNT_CHARS.match(raw):
        raise AmountParseError(f'Unreadable amount: {text!r}')

    last_sep = max(raw.rfind('.'), raw.rfind(','))
    if last_sep == -1:
        return int(raw) * 100

    separator = raw[last_sep]
    integer_part, fraction = raw[:last_sep], raw[last_sep + 1:]

    if len(fraction) in (1, 2) and integer_part:
        thousands = ',' if separator == '.' else '.'
        if separator in integer_part or not _grouped(integer_part, thousands):
            raise AmountParseError(f'Unreadable amount: {text!r}')
        return int(integer_part.replace(thousands, '')) * 100 + int(fraction.ljust(2, '0'))

    if len(fraction) == 3 and raw.count(separator) >= 2:
        other = ',' if separator == '.' else '.'
        if other not in raw and _grouped(raw, separator):
            return int(raw.replace(separator, '')) * 100

    raise AmountParseError(f'Ambiguous or malformed amount: {text!r}')
