import logging
import os
from functools import lru_cache


class Settings:
    def __init__(
        self,
        api_base_url: str,
        api_timeout_secs: float,
        currency_symbol: str,
        timezone: str,
        log_level: str,
    ) -> None:
        self.api_base_url = api_base_url
        self.api_timeout_secs = api_timeout_secs
        self.currency_symbol = currency_symbol
        self.timezone = timezone
        self.log_level = log_level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    api_base_url = os.getenv("EXPENSES_API_BASE_URL", "http://localhost:3000/api")
    api_timeout_secs = float(os.getenv("EXPENSES_API_TIMEOUT_SECS", "5"))
    currency_symbol = os.getenv("EXPENSES_CURRENCY_SYMBOL", "₹")
    timezone = os.getenv("EXPENSES_TIMEZONE", "Europe/Berlin")
    log_level = os.getenv("EXPENSES_LOG_LEVEL", "INFO").upper()
    return Settings(
        api_base_url=api_base_url.rstrip("/"),
        api_timeout_secs=api_timeout_secs,
        currency_symbol=currency_symbol,
        timezone=timezone,
        log_level=log_level,
    )


def configure_logging() -> None:
    level = getattr(logging, get_settings().log_level, logging.INFO)
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
