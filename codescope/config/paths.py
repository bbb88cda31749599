# codescope/config/paths.py
import os
from pathlib import Path

def _get_app_name() -> str:
    return "codescope"

def get_user_data_dir() -> Path:
    """
    Get the user application data directory.
    CODESCOPE_HOME wins, then %APPDATA% (Windows), then ~/.codescope.
    """
    override = os.environ.get("CODESCOPE_HOME")
    if override:
        path = Path(override)
    else:
        appdata_path = os.environ.get("APPDATA")
        if appdata_path:
            path = Path(appdata_path) / _get_app_name()
        else:
            path = Path.home() / f".{_get_app_name()}"

    path.mkdir(parents=True, exist_ok=True)
    return path

def get_user_config_file() -> Path:
    """Get the path to the user's config.json file."""
    return get_user_data_dir() / "config.json"

def get_user_log_dir() -> Path:
    """Get the path to the user's log directory."""
    path = get_user_data_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path
