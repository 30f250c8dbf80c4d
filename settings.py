"""
settings.py — Configuration and logging for the check-in & scoring kiosk.

config.toml holds every tunable; a .env file may point at another config
(KIOSK_CONFIG) or move the data directory (KIOSK_DATA_DIR).
"""

import logging
import os
from pathlib import Path

import tomli
from dotenv import load_dotenv

load_dotenv()

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "config.toml"


# ---------------------------------------------------------------------------
# CONFIGURATION
# ---------------------------------------------------------------------------


def load_config(config_path=None):
    path = config_path or os.environ.get("KIOSK_CONFIG") or DEFAULT_CONFIG_PATH
    with open(path, "rb") as f:
        config = tomli.load(f)

    data_dir = os.environ.get("KIOSK_DATA_DIR")
    if data_dir:
        config["paths"]["data_dir"] = data_dir
    return config


def with_data_dir(config, data_dir):
    """Copy of config whose data files all live under data_dir."""
    return {**config, "paths": {**config["paths"], "data_dir": str(data_dir)}}


def data_path(config, key):
    """Resolve a [paths] entry against the data directory."""
    paths = config["paths"]
    return os.path.join(paths["data_dir"], paths[key])


def roster_path(config):
    return data_path(config, "roster_file")


def evidence_dir(config):
    return data_path(config, "evidence_dir")


def temp_dir(config):
    return data_path(config, "temp_dir")


def ensure_directories(config):
    for dir_path in (config["paths"]["data_dir"], evidence_dir(config), temp_dir(config)):
        Path(dir_path).mkdir(parents=True, exist_ok=True)


# ---------------------------------------------------------------------------
# LOGGING
# ---------------------------------------------------------------------------


def setup_logging(config):
    level = getattr(logging, config["logging"]["log_level"].upper(), logging.INFO)
    handlers = []
    if config["logging"]["log_to_console"]:
        handlers.append(logging.StreamHandler())
    handlers.append(logging.FileHandler(config["logging"]["log_file"], encoding="utf-8"))
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
    )
