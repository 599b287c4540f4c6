"""Business settings read from the environment.

Infrastructure (databases, brokers, event store) is configured by Protean from
``domain.toml``. The knobs below are storefront rules that operators tune per
deployment, so they are read lazily on every access.
"""

import os


def _int(name: str, default: int) -> int:
    return int(os.getenv(name, default))


def _float(name: str, default: float) -> float:
    return float(os.getenv(name, default))


def cod_limit() -> float:
    """Highest checkout total accepted for Cash On Delivery."""
    return _float("STOREFRONT_COD_LIMIT", 120000)


def delivery_days() -> int:
    return _int("STOREFRONT_DELIVERY_DAYS", 7)


def return_window_days() -> int:
    return _int("STOREFRONT_RETURN_WINDOW_DAYS", 7)


def otp_expiry_seconds() -> int:
    return _int("STOREFRONT_OTP_EXPIRY_SECONDS", 300)


def referral_reward_range() -> tuple[int, int]:
    low = _int("STOREFRONT_REFERRAL_REWARD_MIN", 50)
    high = _int("STOREFRONT_REFERRAL_REWARD_MAX", 200)
    return (low, high) if low <= high else (high, low)


def currency() -> str:
    return os.getenv("STOREFRONT_CURRENCY", "INR")
