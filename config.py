import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        month_day_policy: str,
        data_dir: Optional[Path] = None,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.month_day_policy = month_day_policy
        # Only set when database_url points at the default file inside it.
        self.data_dir = data_dir


def ensure_data_dir(settings: Settings) -> None:
    if settings.data_dir is not None:
        settings.data_dir.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir: Optional[Path] = None
    database_url = os.getenv("LEDGER_DATABASE_URL")
    if not database_url:
        data_dir = Path(os.getenv("LEDGER_DATA_DIR", "./data")).resolve()
        database_url = f"sqlite:///{data_dir / 'ledger.db'}"
    timezone = os.getenv("LEDGER_TIMEZONE", "Europe/Berlin")
    month_day_policy = os.getenv("LEDGER_MONTH_DAY_POLICY", "snap_to_end")
    return Settings(
        database_url=database_url,
        timezone=timezone,
        month_day_policy=month_day_policy,
        data_dir=data_dir,
    )
