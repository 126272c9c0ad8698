"""
Balance formatting and account links.

Converts fixed-point nanos into display currency and builds the
manage-credits URL for an endpoint.
"""

from decimal import Decimal, ROUND_DOWN
from typing import TYPE_CHECKING, Optional

from ai_credit_watch.storage.models import BalanceRecord

if TYPE_CHECKING:
    from .controller import BalanceView


NANOS_PER_UNIT = Decimal("1000000000")

# Manage page hosts per deployment, matched against the endpoint
DEFAULT_MANAGE_HOST = "https://myninja.ai"
BETA_MANAGE_HOST = "https://betamyninja.ai"
GAMMA_MANAGE_HOST = "https://gammamyninja.ai"
MANAGE_PATH = "/add-on/credits?from_SN=true"

LOADING_TEXT = "Loading balance..."


def nanos_to_decimal(balance_nanos: int) -> Decimal:
    """Convert nanos to currency units, truncated to 2 decimal places.

    Truncation is toward zero so a displayed balance never exceeds
    what is actually available.

    Args:
        balance_nanos: Fixed-point balance in nanos

    Returns:
        Balance in currency units with exactly two decimal places
    """
    units = Decimal(balance_nanos) / NANOS_PER_UNIT
    return units.quantize(Decimal("0.01"), rounding=ROUND_DOWN)


def format_balance(balance_nanos: int) -> str:
    """Format nanos as a dollar amount, e.g. 5000000000 -> "$5.00"."""
    return f"${nanos_to_decimal(balance_nanos)}"


def balance_summary(record: BalanceRecord) -> str:
    """One-line summary shown next to the manage link."""
    return f"{format_balance(record.balance_nanos)} credits available"


def manage_url(endpoint: Optional[str]) -> Optional[str]:
    """Build the manage-credits page URL for an API endpoint.

    Args:
        endpoint: API base URL the balance is fetched from

    Returns:
        URL of the manage page, or None when no endpoint is configured
    """
    if not endpoint:
        return None

    host = DEFAULT_MANAGE_HOST
    if "beta" in endpoint:
        host = BETA_MANAGE_HOST
    if "gamma" in endpoint:
        host = GAMMA_MANAGE_HOST
    return f"{host}{MANAGE_PATH}"


def describe_view(view: "BalanceView") -> Optional[str]:
    """Text a consuming surface should show for a view, or None to hide it.

    Errors without data are hidden; errors alongside a stale record still
    show the record.
    """
    if view.is_loading and view.record is None:
        return LOADING_TEXT
    if view.record is None:
        return None
    return balance_summary(view.record)
