"""Configuration management using Pydantic settings"""

import platform
import os
from pathlib import Path
from pydantic_settings import BaseSettings
from typing import Optional


def get_default_session_dir() -> str:
    """
    Get OS-specific default directory for persisted session data.

    Returns:
        - macOS: ~/Library/Application Support/RealtyDesk
        - Linux: ~/.config/realtydesk
        - Windows: %APPDATA%/RealtyDesk
    """
    system = platform.system()
    home = Path.home()

    if system == "Darwin":  # macOS
        return str(home / "Library" / "Application Support" / "RealtyDesk")
    elif system == "Windows":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return str(Path(appdata) / "RealtyDesk")
        return str(home / "AppData" / "Roaming" / "RealtyDesk")
    else:  # Linux and others
        xdg_config = os.environ.get("XDG_CONFIG_HOME")
        if xdg_config:
            return str(Path(xdg_config) / "realtydesk")
        return str(home / ".config" / "realtydesk")


class Settings(BaseSettings):
    """Application settings"""

    # Remote session gateway
    API_BASE_URL: str = "http://localhost:5000/api"
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # Remember-me persistence. Without a secret the token is never written to disk.
    SESSION_DIR: str = get_default_session_dir()
    SESSION_SECRET: Optional[str] = None
    SESSION_ENCRYPTION_SALT: Optional[str] = None

    # Reward units
    DEFAULT_AD_REWARD: int = 2
    FEATURE_UNLOCK_HOURS: int = 24
    PREMIUM_PROGRESS_TARGET: int = 30

    # Simulated ad provider (stand-in until a real SDK is wired)
    SIMULATED_AD_LOAD_DELAY: float = 1.0
    SIMULATED_AD_SHOW_DELAY: float = 3.0

    # Local API bridge
    API_HOST: str = "localhost"
    API_PORT: int = 8000

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def session_file(self) -> Path:
        return Path(self.SESSION_DIR) / "session.json"

    def create_directories(self):
        """Create necessary directories"""
        Path(self.SESSION_DIR).mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()
