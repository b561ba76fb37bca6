"""Authentication manager: the auth context the stores consult."""

import json
import os
from pathlib import Path
from typing import Optional
import logging

from .models import SessionData

logger = logging.getLogger(__name__)


class AuthManager:
    """Manages authentication state and session persistence."""

    def __init__(self, session_file: Optional[str] = None) -> None:
        """
        Initialize the authentication manager.

        Args:
            session_file: Path to store session data. Defaults to ~/.supercar_shop_session.json
        """
        if session_file is None:
            session_file = str(Path.home() / ".supercar_shop_session.json")
        self.session_file = session_file
        self.session: SessionData = self._load_session()

    def _load_session(self) -> SessionData:
        """Load session data from file if it exists."""
        if os.path.exists(self.session_file):
            try:
                with open(self.session_file, "r") as f:
                    data = json.load(f)
                    session = SessionData(**data)
                    if session.is_authenticated:
                        logger.info(f"Loaded existing session from {self.session_file}")
                    return session
            except (json.JSONDecodeError, ValueError) as e:
                # If file is corrupted, start fresh
                logger.warning(f"Could not load session: {e}")
        return SessionData()

    def _save_session(self) -> None:
        """Save session data to file."""
        with open(self.session_file, "w") as f:
            json.dump(self.session.model_dump(), f, default=str)
        # Set restrictive permissions on session file
        os.chmod(self.session_file, 0o600)

    def save_session(
        self,
        user_id: str,
        token: Optional[str] = None,
        user_email: Optional[str] = None,
    ) -> None:
        """
        Save authentication session.

        Args:
            user_id: Authenticated user's ID
            token: Bearer token from a successful API login (None for the local database)
            user_email: User's email address
        """
        self.session = SessionData(
            token=token,
            user_id=user_id,
            user_email=user_email,
            is_authenticated=True,
        )
        self._save_session()
        logger.info(f"Session saved to {self.session_file}")

    def get_session(self) -> SessionData:
        """Get current session data."""
        return self.session

    def clear_session(self) -> None:
        """Clear the current session."""
        self.session = SessionData()
        if os.path.exists(self.session_file):
            os.remove(self.session_file)
            logger.info("Session cleared")

    def is_authenticated(self) -> bool:
        """Check if there's an active authenticated session."""
        return self.session.is_authenticated and bool(self.session.user_id)

    @property
    def current_user_id(self) -> Optional[str]:
        """ID of the signed-in user, None when signed out."""
        if not self.is_authenticated():
            return None
        return self.session.user_id

    def get_token(self) -> Optional[str]:
        """Get the bearer token."""
        return self.session.token
