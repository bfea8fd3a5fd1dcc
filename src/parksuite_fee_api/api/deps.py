from __future__ import annotations

from fastapi import Request

from parksuite_fee_api.services.currency import CurrencyFormatter


def get_currency_formatter(request: Request) -> CurrencyFormatter:
    return request.app.state.currency_formatter
