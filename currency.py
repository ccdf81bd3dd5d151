"""Currency display helpers for registration prices."""
from collections.abc import Mapping

CURRENCY_SYMBOLS = {
    "EUR": "€",
    "USD": "$",
    "GBP": "£",
    "CHF": "CHF",
    "JPY": "¥",
    "CNY": "¥",
    "INR": "₹",
    "AUD": "A$",
    "CAD": "C$",
    "SEK": "kr",
    "NOK": "kr",
    "DKK": "kr",
    "PLN": "zł",
    "CZK": "Kč",
    "HUF": "Ft",
    "RSD": "RSD",
    "BAM": "KM",
}

# symbol goes in front of the amount; everything else is rendered "{amount} {symbol}"
PREFIX_CURRENCIES = frozenset({"USD", "GBP", "JPY", "CNY", "INR", "AUD", "CAD"})


def currency_symbol(code: str) -> str:
    """Symbol for a currency code; unknown codes come back unchanged."""
    if not code:
        return ""
    return CURRENCY_SYMBOLS.get(code.upper(), code)


def format_price_without_zeros(amount: float) -> str:
    """Up to two decimals, trailing zeros (and a bare dot) dropped: 450.0 -> "450"."""
    text = f"{amount:.2f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text == "-0":
        return "0"
    return text


def format_price(amount: float, currency: str) -> str:
    return f"{format_price_without_zeros(amount)} {currency}"


def format_price_with_symbol(amount: float, currency: str) -> str:
    symbol = currency_symbol(currency)
    value = format_price_without_zeros(amount)
    if currency and currency.upper() in PREFIX_CURRENCIES:
        return f"{symbol}{value}"
    return f"{value} {symbol}"


def price_amount_for(value, currency: str) -> float:
    """Resolve a price that is either a plain number or a per-currency mapping.

    A mapping without the requested currency falls back to its first defined
    amount, so a conference switching display currency still shows a price.
    """
    if value is None:
        return 0
    if isinstance(value, Mapping):
        for key in (currency, (currency or "").upper()):
            if value.get(key) is not None:
                return value[key]
        for amount in value.values():
            if amount is not None:
                return amount
        return 0
    return value
