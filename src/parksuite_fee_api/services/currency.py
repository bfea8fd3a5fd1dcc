from __future__ import annotations

from decimal import Decimal

from babel.core import Locale, UnknownLocaleError
from babel.numbers import format_currency, get_currency_symbol
from loguru import logger

FALLBACK_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "ZAR": "R",
    "CDF": "FC",
    "XAF": "FCFA",
}


def to_major_units(amount_minor: int) -> Decimal:
    return Decimal(amount_minor).scaleb(-2)


def fallback_format(amount_minor: int, symbol: str) -> str:
    amount = to_major_units(amount_minor)
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):.2f}"


class CurrencyFormatter:
    """Formats minor-unit amounts for display using Babel locale data.

    Build one per process and pass it to the fee engine. Parsed locales are
    cached on the instance. Unsupported locales degrade to
    ``{symbol}{amount/100:.2f}`` and never raise.
    """

    def __init__(self, default_locale: str = "en-US") -> None:
        self.default_locale = default_locale
        self._locales: dict[str, Locale | None] = {}

    def _resolve_locale(self, locale: str | None) -> Locale | None:
        tag = (locale or self.default_locale).strip()
        if tag in self._locales:
            return self._locales[tag]
        try:
            parsed: Locale | None = Locale.parse(tag.replace("-", "_"))
        except (UnknownLocaleError, ValueError) as exc:
            logger.warning("currency_formatter.unsupported_locale locale={} error={}", tag, exc)
            parsed = None
        self._locales[tag] = parsed
        return parsed

    def symbol(self, currency: str, locale: str | None = None) -> str:
        code = currency.upper()
        parsed = self._resolve_locale(locale)
        if parsed is None:
            return FALLBACK_SYMBOLS.get(code, code)
        return get_currency_symbol(code, locale=parsed)

    def format(self, amount_minor: int, currency: str, locale: str | None = None) -> str:
        code = currency.upper()
        parsed = self._resolve_locale(locale)
        if parsed is None:
            return fallback_format(amount_minor, FALLBACK_SYMBOLS.get(code, code))
        try:
            return format_currency(to_major_units(amount_minor), code, locale=parsed)
        except (ValueError, KeyError) as exc:
            logger.warning(
                "currency_formatter.format_failed currency={} locale={} error={}",
                code,
                locale,
                exc,
            )
            return fallback_format(amount_minor, self.symbol(code, locale))
