# =============================================================================
# Authentication Providers
# =============================================================================
# HTTP Basic credentials guarding the manual trigger and ledger views.
# The authenticated username is recorded as requested_by on deployments.
# =============================================================================

import secrets
from dataclasses import dataclass
from typing import Optional


@dataclass
class AuthenticatedUser:
    """Operator identity attached to manual deployments."""

    username: str
    display_name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.display_name is None:
            self.display_name = self.username


class BasicAuthProvider:
    """Single operator account configured via WEBAPP_USERNAME / WEBAPP_PASSWORD."""

    def __init__(self, username: str, password: str) -> None:
        self._username = username
        self._password = password

    @property
    def enabled(self) -> bool:
        """An empty configured password locks the account."""
        return bool(self._username and self._password)

    def authenticate(self, credentials: dict) -> Optional[AuthenticatedUser]:
        """
        Check HTTP Basic credentials.

        Args:
            credentials: Dict with 'username' and 'password' keys.

        Returns:
            AuthenticatedUser if credentials match, None otherwise.
        """
        if not self.enabled:
            return None

        username = credentials.get("username") or ""
        password = credentials.get("password") or ""

        # Both comparisons always run, in constant time
        username_match = secrets.compare_digest(
            username.encode("utf-8"), self._username.encode("utf-8")
        )
        password_match = secrets.compare_digest(
            password.encode("utf-8"), self._password.encode("utf-8")
        )

        if username_match and password_match:
            return AuthenticatedUser(username=username)

        return None
