"""
Bootstrap script to ensure the operator-editable config files exist.
Writes the built-in export template and an empty settings overlay into the
config dir when they are missing, and repairs a corrupted app_settings.json.
"""
import json
import os
from pathlib import Path

from budgeting.export import DEFAULT_EXPORT_CSV_TEMPLATE

# Project structure
PROJECT_ROOT = Path(__file__).parent
CONFIG_DIR = Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))

DEFAULT_SETTINGS = {
    "_comment": "Overrides for config.py; environment variables still win.",
}


def ensure_config_files(config_dir: Path = CONFIG_DIR, template_name: str = "report_export.csv.j2") -> None:
    """Verify and restore missing config files."""
    config_dir.mkdir(parents=True, exist_ok=True)

    # 1. Settings overlay
    settings = config_dir / "app_settings.json"
    if not settings.exists():
        print("[Bootstrap] Creating app_settings.json")
        settings.write_text(json.dumps(DEFAULT_SETTINGS, indent=2) + "\n", encoding="utf-8")
    else:
        try:
            if settings.stat().st_size == 0:
                raise ValueError("Empty file")
            with open(settings, "r", encoding="utf-8") as f:
                json.load(f)
        except (json.JSONDecodeError, ValueError):
            print("[Bootstrap] Repairing invalid app_settings.json")
            settings.write_text(json.dumps(DEFAULT_SETTINGS, indent=2) + "\n", encoding="utf-8")

    # 2. Jinja2 export template
    template = config_dir / template_name
    if not template.exists():
        print(f"[Bootstrap] Restoring missing template: {template_name}")
        template.write_text(DEFAULT_EXPORT_CSV_TEMPLATE, encoding="utf-8")


if __name__ == "__main__":
    ensure_config_files()
