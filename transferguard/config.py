import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    log_level: str = "INFO"
    scan_timeout_seconds: Optional[float] = None
    appinsights_connection_string: Optional[str] = None


def _parse_timeout(raw: Optional[str]) -> Optional[float]:
    if raw is None or raw.strip() == "":
        return None
    value = float(raw)
    if value <= 0:
        raise ValueError(f"TRANSFERGUARD_SCAN_TIMEOUT_SECONDS must be positive, got {raw}")
    return value


def load_settings() -> Settings:
    return Settings(
        log_level=os.getenv("TRANSFERGUARD_LOG_LEVEL", "INFO").upper(),
        scan_timeout_seconds=_parse_timeout(os.getenv("TRANSFERGUARD_SCAN_TIMEOUT_SECONDS")),
        appinsights_connection_string=os.getenv("AZURE_APPINSIGHTS_CONNECTION_STRING") or None,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
