"""
Session Provider.

Who is using the app. A guest has no remote identity: nothing is queued
for sync and no drain is ever attempted. Identity verification itself is
someone else's job; this only records the outcome.
"""

from dataclasses import dataclass
from typing import Protocol

from memos.core.exceptions import ValidationError
from memos.core.logging import get_logger
from memos.core.utils import is_valid_email

logger = get_logger(__name__)

GUEST_USER_ID = "guest-user"


class SessionProvider(Protocol):
    def is_guest(self) -> bool: ...

    def current_user_id(self) -> str | None: ...


@dataclass(frozen=True)
class User:
    id: str
    email: str
    name: str


class LocalSession:
    """
    In-process session state.

    Starts signed out. Signed out behaves like a guest for sync purposes:
    there is nobody to sync for.
    """

    def __init__(self) -> None:
        self._user: User | None = None
        self._guest = False

    @property
    def user(self) -> User | None:
        return self._user

    def is_guest(self) -> bool:
        return self._guest or self._user is None

    def current_user_id(self) -> str | None:
        if self._user is None or self._guest:
            return None
        return self._user.id

    def sign_in(self, user_id: str, email: str, name: str | None = None) -> User:
        """
        Record an authenticated user.

        Raises:
            ValidationError: If the id is blank or the email malformed
        """
        if not user_id.strip():
            raise ValidationError("User id is required", details={"missing_fields": ["user_id"]})
        if not is_valid_email(email):
            raise ValidationError("Invalid email address", details={"email": email})
        self._user = User(id=user_id, email=email, name=name or email.split("@")[0])
        self._guest = False
        logger.info("Signed in", source="internal", extra={"user_id": user_id})
        return self._user

    def sign_in_guest(self) -> User:
        self._user = User(id=GUEST_USER_ID, email="guest@example.com", name="Guest")
        self._guest = True
        logger.info("Signed in as guest", source="internal")
        return self._user

    def sign_out(self) -> bool:
        """Clear the session. Returns True if the departing session was a guest."""
        was_guest = self._guest
        self._user = None
        self._guest = False
        logger.info("Signed out", source="internal", extra={"was_guest": was_guest})
        return was_guest
