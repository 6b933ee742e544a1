"""Configuration loader for the CBBI monitor. Loads .env for Telegram credentials."""
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

# Load .env so TELEGRAM_BOT_TOKEN and TELEGRAM_TOPIC are available
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "settings.yaml"


def load_config(config_path: str | None = None) -> dict[str, Any]:
    """Load YAML config; override with env / .env (TELEGRAM_*, CBBI_*)."""
    if config_path is None:
        config_path = str(DEFAULT_CONFIG_PATH)
    with open(config_path) as f:
        cfg = yaml.safe_load(f) or {}
    # Env overrides (from .env or environment)
    if os.getenv("TELEGRAM_BOT_TOKEN"):
        cfg.setdefault("telegram", {})["bot_token"] = os.getenv("TELEGRAM_BOT_TOKEN")
    if os.getenv("TELEGRAM_TOPIC"):
        cfg.setdefault("telegram", {})["topic"] = os.getenv("TELEGRAM_TOPIC")
    if os.getenv("CBBI_URL"):
        cfg.setdefault("cbbi", {})["url"] = os.getenv("CBBI_URL")
    if os.getenv("CBBI_PREFS_DIR"):
        cfg.setdefault("storage", {})["dir"] = os.getenv("CBBI_PREFS_DIR")
    return cfg
