"""Configuration constants for the InstaGrap desktop backend."""

import os
import sys
import tempfile
from pathlib import Path

import httpx


class AppConfig:
    """Configuration constants for the desktop backend."""

    # Remote services
    API_BASE = os.getenv("INSTAGRAP_API_BASE", "https://instagram-api-672383441505.europe-west1.run.app")
    CLASSIFY_API_BASE = os.getenv(
        "INSTAGRAP_CLASSIFY_API_BASE", "https://bio-classifier-672383441505.us-central1.run.app"
    )
    USER_AGENT = "InstaGrap/1.0"

    # HTTP timeouts
    REGISTER_TIMEOUT = httpx.Timeout(30.0)
    # a login-status timeout is reported as "no login state"
    LOGIN_STATUS_TIMEOUT = httpx.Timeout(10.0)
    CRITERIA_TIMEOUT = httpx.Timeout(30.0)
    SCRAPE_TIMEOUT = httpx.Timeout(connect=30.0, write=30.0, read=60.0, pool=None)

    # Login capture (milliseconds, Playwright units)
    LOGIN_URL = "https://www.instagram.com/"
    LOGIN_WAIT_TIMEOUT_MS = 300_000
    BROWSER_LAUNCH_TIMEOUT_MS = 120_000
    BROWSER_CHANNEL = os.getenv("INSTAGRAP_BROWSER_CHANNEL", "chrome")
    BROWSER_ARGS = [
        "--disable-extensions",
        "--mute-audio",
        "--window-size=1280,900",
    ]
    DONE_BUTTON_ID = "pw-done-btn"

    # Cloud storage
    GCP_PROJECT_ID = os.getenv("GCP_PROJECT_ID", "newera-93301")
    GCS_SCHEME = "gs://"
    STATE_OBJECT_PREFIX = "insta_state_"

    # Local persistence
    STATE_FILE_NAME = "instagram_scraper_state.json"
    PROFILE_DIR_NAME = "insta_profile"
    STATE_LOCK_TIMEOUT_S = float(os.getenv("INSTAGRAP_STATE_LOCK_TIMEOUT", "10"))

    # Result export
    DOWNLOAD_FILENAME_PREFIX = "instagram_profiles"
    CSV_HEADERS = ["Username", "Profile URL"]


def config_dir() -> Path:
    """Platform config directory; INSTAGRAP_CONFIG_DIR overrides it."""
    override = os.getenv("INSTAGRAP_CONFIG_DIR")
    if override:
        return Path(override)
    home = Path.home()
    if sys.platform == "darwin":
        return home / "Library" / "Application Support"
    if sys.platform.startswith("win"):
        appdata = os.getenv("APPDATA")
        if not appdata:
            raise OSError("Could not find config directory")
        return Path(appdata)
    return Path(os.getenv("XDG_CONFIG_HOME") or home / ".config")


def download_dir() -> Path:
    """Platform download directory, falling back to the temp dir."""
    override = os.getenv("INSTAGRAP_DOWNLOAD_DIR")
    if override:
        return Path(override)
    candidate = Path.home() / "Downloads"
    if candidate.is_dir():
        return candidate
    return Path(tempfile.gettempdir())


def state_file_path() -> Path:
    return config_dir() / AppConfig.STATE_FILE_NAME


def profile_dir_path() -> Path:
    return config_dir() / AppConfig.PROFILE_DIR_NAME
