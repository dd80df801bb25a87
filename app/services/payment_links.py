from dataclasses import dataclass
from decimal import Decimal
from typing import Callable
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from app.config import settings


def append_query_param(url: str, key: str, value: str | int) -> str:
    """Append a query parameter to URL while preserving existing query params and fragments."""
    parts = urlsplit(url)
    query_params = parse_qsl(parts.query, keep_blank_values=True)
    query_params.append((key, str(value)))
    updated_query = urlencode(query_params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, updated_query, parts.fragment))


def _format_amount(amount: Decimal) -> str:
    return format(Decimal(amount).quantize(Decimal("0.01")), "f")


@dataclass(frozen=True)
class PaymentLinkProvider:
    method: str
    build: Callable[[int, Decimal, str, str | None], str]


def _stripe_link(offer_id: int, amount: Decimal, currency: str, account_email: str | None) -> str:
    # Placeholder link; no Checkout session is created and no webhook confirms it.
    return f"{settings.STRIPE_PAYMENT_LINK_BASE.rstrip('/')}_{offer_id}"


def _paypal_link(offer_id: int, amount: Decimal, currency: str, account_email: str | None) -> str:
    url = settings.PAYPAL_CHECKOUT_URL
    for key, value in (
        ("cmd", "_xclick"),
        ("business", account_email or ""),
        ("amount", _format_amount(amount)),
        ("currency_code", currency),
        ("item_name", "Service Offer"),
        ("invoice", f"offer-{offer_id}"),
    ):
        url = append_query_param(url, key, value)
    return url


def get_payment_link_providers() -> dict[str, PaymentLinkProvider]:
    return {
        "stripe": PaymentLinkProvider(method="stripe", build=_stripe_link),
        "paypal": PaymentLinkProvider(method="paypal", build=_paypal_link),
    }


def generate_payment_link(
    offer_id: int,
    payment_method: str,
    amount: Decimal,
    currency: str | None = None,
    account_email: str | None = None,
) -> str:
    """Return an opaque checkout URL for the offer."""
    provider = get_payment_link_providers().get(payment_method)
    if provider is None:
        raise ValueError(f"Unsupported payment method: {payment_method}")
    return provider.build(offer_id, amount, currency or settings.DEFAULT_CURRENCY, account_email)
