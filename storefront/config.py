from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Tuple

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]  # .../storefront repo root
load_dotenv(dotenv_path=ROOT_DIR / ".env")


def _get_env(*keys: str, default: str | None = None) -> str | None:
    for k in keys:
        v = os.getenv(k)
        if v is not None and str(v).strip() != "":
            return v.strip()
    return default


def _get_int(*keys: str, default: int | None = None) -> int | None:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return int(v)


def _get_path(*keys: str, default: str) -> str:
    v = _get_env(*keys, default=default)
    return str(v)


def _get_list(*keys: str) -> Tuple[str, ...]:
    v = _get_env(*keys, default="") or ""
    return tuple(x.strip() for x in v.split(",") if x.strip())


def _decimals() -> int:
    # 0 is valid for zero-decimal currencies such as jpy
    v = _get_int("DECIMALS", default=None)
    return 2 if v is None else v


@dataclass(frozen=True)
class Settings:
    db_path: str
    export_dir: str
    currency: str
    decimals: int
    tax_rate: Decimal
    public_url: str
    stripe_secret_key: str
    stripe_webhook_secret: str
    auth_header: str
    admin_user_ids: Tuple[str, ...]
    bot_token: str
    admin_id: int
    cart_sessions_max: int = 1000


def load_settings() -> Settings:
    return Settings(
        db_path=_get_path("DB_PATH", "DATABASE_PATH", default=str(ROOT_DIR / "data" / "storefront.db")),
        export_dir=_get_path("EXPORT_DIR", default=str(ROOT_DIR / "exports")),
        currency=(_get_env("CURRENCY", default="usd") or "usd").lower(),
        decimals=_decimals(),
        tax_rate=Decimal(_get_env("TAX_RATE", default="0.08") or "0.08"),
        public_url=(_get_env("PUBLIC_URL", "NEXT_PUBLIC_URL", default="http://localhost:8000") or "").rstrip("/"),
        stripe_secret_key=_get_env("STRIPE_SECRET_KEY", default="") or "",
        stripe_webhook_secret=_get_env("STRIPE_WEBHOOK_SECRET", default="") or "",
        auth_header=_get_env("AUTH_HEADER", default="X-User-Id") or "X-User-Id",
        admin_user_ids=_get_list("ADMIN_USER_IDS"),
        bot_token=_get_env("BOT_TOKEN", "TELEGRAM_BOT_TOKEN", default="") or "",
        admin_id=_get_int("ADMIN_ID", "ADMIN_TG_ID", "ADMIN_TG", default=0) or 0,
        cart_sessions_max=_get_int("CART_SESSIONS_MAX", default=1000) or 1000,
    )


settings = load_settings()
