"""
infrastructure.config - Typed, injectable configuration.

A frozen dataclass that can be constructed from the environment (after
loading a .env file) or passed explicitly in tests.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from domain.models import SyncPolicy


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Centralized configuration for the order taker.

    Construct via from_env(), or pass values explicitly in tests.
    """
    project_root: Path

    # Database (documents + accounts)
    db_path: str = "ordertaker.db"

    # Where `export` writes .tsv files
    export_dir: Path = Path("exports")

    # How repositories reconcile snapshots with unconfirmed local writes
    sync_policy: SyncPolicy = SyncPolicy.REPLACE

    # Auth
    jwt_secret: str = "change-me-in-production"
    jwt_expiry_hours: int = 24 * 14
    federated_secret: str = ""
    min_password_length: int = 6
    max_failed_sign_ins: int = 5
    require_email_verification: bool = False

    # Logging
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, project_root: Optional[Path] = None) -> Settings:
        """Build Settings from the environment and an optional .env file."""
        from dotenv import load_dotenv
        load_dotenv()

        root = project_root or Path(__file__).resolve().parent.parent.parent

        return cls(
            project_root=root,
            db_path=os.getenv("DB_PATH", str(root / "data" / "ordertaker.db")),
            export_dir=Path(os.getenv("EXPORT_DIR", str(root / "exports"))),
            sync_policy=SyncPolicy(os.getenv("SYNC_POLICY", SyncPolicy.REPLACE.value)),
            jwt_secret=os.getenv("JWT_SECRET", "change-me-in-production"),
            jwt_expiry_hours=int(os.getenv("JWT_EXPIRY_HOURS", str(24 * 14))),
            federated_secret=os.getenv("FEDERATED_SECRET", ""),
            min_password_length=int(os.getenv("MIN_PASSWORD_LENGTH", "6")),
            max_failed_sign_ins=int(os.getenv("MAX_FAILED_SIGN_INS", "5")),
            require_email_verification=_env_bool("REQUIRE_EMAIL_VERIFICATION", False),
            log_level=os.getenv("LOG_LEVEL", "WARNING").upper(),
        )
