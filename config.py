import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        journal_file: str,
        hledger_executable: str,
        hledger_timeout_secs: float,
        database_url: str,
        timezone: str,
        refresh_interval_minutes: int,
    ) -> None:
        self.journal_file = journal_file
        self.hledger_executable = hledger_executable
        self.hledger_timeout_secs = hledger_timeout_secs
        self.database_url = database_url
        self.timezone = timezone
        self.refresh_interval_minutes = refresh_interval_minutes


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LEDGER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _default_journal() -> str:
    # hledger's own convention, before falling back to the usual location
    env_journal = os.getenv("LEDGER_FILE")
    if env_journal:
        return env_journal
    return str(Path.home() / ".local" / "share" / "hledger" / "journal.journal")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "dashboard.db"
    journal_file = os.path.expandvars(
        os.getenv("LEDGER_JOURNAL_FILE", _default_journal())
    )
    hledger_executable = os.getenv("LEDGER_HLEDGER_BIN", "hledger")
    hledger_timeout_secs = float(os.getenv("LEDGER_HLEDGER_TIMEOUT_SECS", "60"))
    database_url = os.getenv("LEDGER_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("LEDGER_TIMEZONE", "UTC")
    refresh_interval_minutes = int(os.getenv("LEDGER_REFRESH_INTERVAL_MINUTES", "30"))
    return Settings(
        journal_file=journal_file,
        hledger_executable=hledger_executable,
        hledger_timeout_secs=hledger_timeout_secs,
        database_url=database_url,
        timezone=timezone,
        refresh_interval_minutes=refresh_interval_minutes,
    )
