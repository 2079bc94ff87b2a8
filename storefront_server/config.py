"""Runtime configuration from environment variables."""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_API_URL = "http://localhost:5000/api"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """
    Storefront server settings.

    Environment variable mapping:
    - STOREFRONT_API_URL → api_url
    - STOREFRONT_STATE_DIR → state_dir (local cart/wishlist/RFQ and session files)
    - STOREFRONT_TOKEN → token (bearer token, optional)
    - STOREFRONT_EMAIL → email (optional)
    - STOREFRONT_GATE_PRICES → gate_prices ("price on request" for guests)
    - STOREFRONT_TIMEOUT → timeout (seconds)
    """

    api_url: str = Field(default=DEFAULT_API_URL, description="Storefront API root")
    state_dir: str = Field(
        default_factory=lambda: str(Path.home() / ".storefront"),
        description="Directory for local state files",
    )
    token: Optional[str] = Field(None, description="Bearer token for the storefront API")
    email: Optional[str] = Field(None, description="Email of the signed-in buyer")
    gate_prices: bool = Field(default=False, description="Withhold prices from guests")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")

    @property
    def session_file(self) -> str:
        return os.path.join(self.state_dir, "session.json")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from STOREFRONT_* environment variables."""
        values: dict = {}
        if os.environ.get("STOREFRONT_API_URL"):
            values["api_url"] = os.environ["STOREFRONT_API_URL"]
        if os.environ.get("STOREFRONT_STATE_DIR"):
            values["state_dir"] = os.path.expanduser(os.environ["STOREFRONT_STATE_DIR"])
        if os.environ.get("STOREFRONT_TIMEOUT"):
            values["timeout"] = float(os.environ["STOREFRONT_TIMEOUT"])
        values["token"] = os.environ.get("STOREFRONT_TOKEN") or None
        values["email"] = os.environ.get("STOREFRONT_EMAIL") or None
        values["gate_prices"] = _env_flag("STOREFRONT_GATE_PRICES")
        return cls(**values)
