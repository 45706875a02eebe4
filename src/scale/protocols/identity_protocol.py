"""
Identity Provider Protocol

The external authentication service supplies a stable user identity,
display name and avatar URL.
"""

from typing import Protocol, Optional

from src.scale.models import UserIdentity


class IdentityProvider(Protocol):
    """Protocol for the signed-in user lookup."""

    def current_user(self) -> Optional[UserIdentity]:
        """
        Get the signed-in user.

        Returns:
            UserIdentity, or None for anonymous viewers
        """
        ...
