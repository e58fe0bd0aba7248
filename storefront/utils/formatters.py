from decimal import Decimal
from typing import Union

CURRENCY_SYMBOLS = {"usd": "$", "eur": "€", "gbp": "£"}


def money(v: Union[Decimal, float], currency: str = "usd", decimals: int = 2) -> str:
    sym = CURRENCY_SYMBOLS.get(currency.lower())
    if sym:
        return f"{sym}{float(v):.{decimals}f}"
    return f"{float(v):.{decimals}f} {currency.upper()}"
