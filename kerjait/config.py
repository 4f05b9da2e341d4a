"""Environment-based settings for kerjait."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

# Locations the board serves. Postings tagged only with other locations are
# left out of general listings.
SUPPORTED_LOCATIONS = (
    "kuala-lumpur",
    "selangor",
    "petaling-jaya",
    "cyberjaya",
    "putrajaya",
    "penang",
    "johor",
    "johor-bahru",
    "melaka",
    "negeri-sembilan",
    "perak",
    "ipoh",
    "pahang",
    "kedah",
    "kelantan",
    "terengganu",
    "perlis",
    "sabah",
    "sarawak",
    "labuan",
    "malaysia",
    "remote",
)

DEFAULT_PAGE_LIMIT = 10
DEFAULT_HOME_LIMIT = 4


def _parse_list(env_name: str) -> List[str]:
    raw = os.getenv(env_name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


def _parse_int(env_name: str, default: int) -> int:
    raw = os.getenv(env_name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass
class Settings:
    db_path: Path
    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    log_to_file: bool = True
    page_limit: int = DEFAULT_PAGE_LIMIT
    home_limit: int = DEFAULT_HOME_LIMIT
    lookup_workers: int = 8
    locations: List[str] = field(default_factory=lambda: list(SUPPORTED_LOCATIONS))

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            db_path=Path(os.getenv("KERJAIT_DB", "data/jobs.db")),
            log_level=os.getenv("KERJAIT_LOG_LEVEL", "INFO").upper(),
            log_dir=Path(os.getenv("KERJAIT_LOG_DIR", "logs")),
            log_to_file=os.getenv("KERJAIT_LOG_FILE", "true").lower() not in {"0", "false", "no"},
            page_limit=_parse_int("KERJAIT_PAGE_LIMIT", DEFAULT_PAGE_LIMIT),
            home_limit=_parse_int("KERJAIT_HOME_LIMIT", DEFAULT_HOME_LIMIT),
            lookup_workers=_parse_int("KERJAIT_LOOKUP_WORKERS", 8),
            locations=_parse_list("KERJAIT_LOCATIONS") or list(SUPPORTED_LOCATIONS),
        )
