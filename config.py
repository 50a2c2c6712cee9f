import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        calendar_horizon_months: int,
        cache_ttl_secs: float,
        tax_rules_path: Optional[str],
        default_mode: str,
        fiscal_year_start_month: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.calendar_horizon_months = calendar_horizon_months
        self.cache_ttl_secs = cache_ttl_secs
        self.tax_rules_path = tax_rules_path
        self.default_mode = default_mode
        self.fiscal_year_start_month = fiscal_year_start_month


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("TENULIVRE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "tenulivre.db"
    database_url = os.getenv("TENULIVRE_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("TENULIVRE_TIMEZONE", "America/Montreal")
    calendar_horizon_months = int(os.getenv("TENULIVRE_CALENDAR_HORIZON_MONTHS", "6"))
    cache_ttl_secs = float(os.getenv("TENULIVRE_CACHE_TTL_SECS", "300"))
    tax_rules_path = os.getenv("TENULIVRE_TAX_RULES_PATH") or None
    default_mode = os.getenv("TENULIVRE_DEFAULT_MODE", "business")
    fiscal_year_start_month = int(os.getenv("TENULIVRE_FISCAL_YEAR_START_MONTH", "1"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        calendar_horizon_months=calendar_horizon_months,
        cache_ttl_secs=cache_ttl_secs,
        tax_rules_path=tax_rules_path,
        default_mode=default_mode,
        fiscal_year_start_month=fiscal_year_start_month,
    )
