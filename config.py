"""
Central configuration for the budget office service.

All paths, integration credentials and report defaults are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/app_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

DEFAULT_OUTPUT_DIR = PROJECT_ROOT / "output"
DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"
DB_FILENAME        = "budgets.db"


@dataclass
class Config:
    # --- Storage ---
    output_dir: Path = field(
        default_factory=lambda: Path(os.getenv("OUTPUT_DIR", str(DEFAULT_OUTPUT_DIR)))
    )
    config_dir: Path = field(
        default_factory=lambda: Path(os.getenv("CONFIG_DIR", str(DEFAULT_CONFIG_DIR)))
    )
    # DB_PATH, or budgets.db inside output_dir
    db_path: Optional[Path] = field(
        default_factory=lambda: Path(os.environ["DB_PATH"]) if os.getenv("DB_PATH") else None
    )

    # --- Client registry (Google Sheets) ---
    # Service-account JSON, either raw or base64-encoded.
    google_sheets_credentials: Optional[str] = field(
        default_factory=lambda: os.getenv("GOOGLE_SHEETS_CREDENTIALS")
    )
    google_sheets_sheet_id: Optional[str] = field(
        default_factory=lambda: os.getenv("GOOGLE_SHEETS_SHEET_ID")
    )
    google_sheets_range: str = field(
        default_factory=lambda: os.getenv("GOOGLE_SHEETS_RANGE", "A2:G")
    )
    client_lookup_ttl_seconds: int = field(
        default_factory=lambda: int(os.getenv("CLIENT_LOOKUP_TTL_SECONDS", "3600"))
    )

    # --- Reports ---
    report_default_period: str = field(
        default_factory=lambda: os.getenv("REPORT_DEFAULT_PERIOD", "month")
    )
    # today | week | month | custom | all
    export_template: str = field(
        default_factory=lambda: os.getenv("EXPORT_TEMPLATE", "report_export.csv.j2")
    )
    # Looked up in config_dir; the built-in template is used when absent.

    def __post_init__(self) -> None:
        """Derive db_path, then overlay runtime-tunable settings from app_settings.json."""
        if self.db_path is None:
            self.db_path = self.output_dir / DB_FILENAME

        settings_file = self.config_dir / "app_settings.json"
        if not settings_file.exists():
            return
        _type_map: dict[str, type] = {
            "google_sheets_sheet_id":     str,
            "google_sheets_range":        str,
            "client_lookup_ttl_seconds":  int,
            "report_default_period":      str,
            "export_template":            str,
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key not in _type_map or not hasattr(self, key):
                    continue
                # an environment variable beats the settings file
                if os.getenv(key.upper()) is not None:
                    continue
                setattr(self, key, _type_map[key](val))
        except Exception as exc:
            logger.warning("Failed to load app_settings.json: %s", exc)

    @property
    def export_template_path(self) -> Path:
        return self.config_dir / self.export_template
