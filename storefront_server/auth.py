"""Authentication state for the storefront API."""

import json
import os
from pathlib import Path
from typing import Optional
import logging

from .models import Account, SessionData

logger = logging.getLogger(__name__)


class AuthManager:
    """Manages authentication state and session persistence."""

    def __init__(
        self,
        session_file: Optional[str] = None,
        token: Optional[str] = None,
        user_email: Optional[str] = None,
    ) -> None:
        """
        Initialize the authentication manager.

        Args:
            session_file: Path to store session data. Defaults to ~/.storefront/session.json
            token: Bearer token to start with (e.g. from STOREFRONT_TOKEN)
            user_email: Email stored alongside a configured token
        """
        if session_file is None:
            session_file = str(Path.home() / ".storefront" / "session.json")
        self.session_file = session_file
        self.session: SessionData = self._load_session()

        if token:
            logger.info("✓ Loaded API token from configuration")
            self.save_session(
                token=token,
                user_email=user_email or self.session.user_email,
                account=self.session.account,
            )

    def _load_session(self) -> SessionData:
        """Load session data from file if it exists."""
        if os.path.exists(self.session_file):
            try:
                with open(self.session_file, "r") as f:
                    data = json.load(f)
                    return SessionData(**data)
            except (json.JSONDecodeError, ValueError):
                # If file is corrupted, start fresh
                logger.warning(f"Ignoring unreadable session file {self.session_file}")
        return SessionData()

    def _save_session(self) -> None:
        """Save session data to file."""
        os.makedirs(os.path.dirname(self.session_file) or ".", exist_ok=True)
        with open(self.session_file, "w") as f:
            json.dump(self.session.model_dump(mode="json"), f, default=str)
        # Set restrictive permissions on session file
        os.chmod(self.session_file, 0o600)

    def save_session(
        self,
        token: str,
        user_email: Optional[str] = None,
        account: Optional[Account] = None,
    ) -> None:
        """
        Save authentication session.

        Args:
            token: Bearer token from a successful login
            user_email: User's email address
            account: Business account attached to the user
        """
        self.session = SessionData(
            token=token,
            user_email=user_email,
            account=account,
            is_authenticated=True,
        )
        self._save_session()

    def get_session(self) -> SessionData:
        """Get current session data."""
        return self.session

    def clear_session(self) -> None:
        """Clear the current session."""
        self.session = SessionData()
        if os.path.exists(self.session_file):
            os.remove(self.session_file)

    def is_authenticated(self) -> bool:
        """Check if there's an active authenticated session."""
        return self.session.is_authenticated and bool(self.session.token)

    @property
    def account(self) -> Optional[Account]:
        """Business account of the signed-in buyer, if any."""
        if not self.is_authenticated():
            return None
        return self.session.account

    def auth_headers(self) -> dict[str, str]:
        """Headers carrying the bearer token, empty for guests."""
        if not self.is_authenticated():
            return {}
        return {"Authorization": f"Bearer {self.session.token}"}
