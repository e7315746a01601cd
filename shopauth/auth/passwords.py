"""Password hashing and strength validation."""

import logging
import re

from passlib.context import CryptContext

from shopauth.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"

# Password validation patterns
PATTERNS = {
    "uppercase": re.compile(r"[A-Z]"),
    "lowercase": re.compile(r"[a-z]"),
    "digit": re.compile(r"\d"),
    "special": re.compile("[" + re.escape(SYMBOLS) + "]"),
}

MIN_LENGTH = 8

# bcrypt only looks at the first 72 bytes of a secret
BCRYPT_MAX_BYTES = 72


def _truncate_utf8(password: str, limit: int = BCRYPT_MAX_BYTES) -> str:
    """Truncate a password to ``limit`` bytes at a UTF-8 character boundary."""
    password_bytes = password.encode("utf-8")
    if len(password_bytes) <= limit:
        return password
    # An incomplete trailing multi-byte sequence is dropped, nothing else
    return password_bytes[:limit].decode("utf-8", errors="ignore")


class PasswordHasher:
    """Salted one-way password hashing with bcrypt.

    The work factor is fixed at construction. Verification never raises:
    a malformed or empty hash simply fails to match.
    """

    def __init__(self, rounds: int = 12):
        """Initialize the hasher.

        Args:
            rounds: bcrypt cost parameter (log2 of the iteration count)
        """
        self.rounds = rounds
        self.pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )
        # Pre-computed hash so unknown-user logins cost one verification too
        self._dummy_hash = self.pwd_context.hash("dummy_password_for_timing")

    def hash(self, password: str) -> str:
        """Hash a password.

        Args:
            password: The plain text password to hash

        Returns:
            The bcrypt hash

        Raises:
            ValidationError: If the password is empty
        """
        if not password:
            raise ValidationError("Password cannot be empty", field="password")
        return self.pwd_context.hash(_truncate_utf8(password))

    def verify(self, password: str, password_hash: str | None) -> bool:
        """Verify a plain password against a hash.

        Args:
            password: The plain text password
            password_hash: The stored hash (may be empty or malformed)

        Returns:
            True if the password matches, False otherwise
        """
        if not password or not password_hash:
            return False
        try:
            return self.pwd_context.verify(_truncate_utf8(password), password_hash)
        except (ValueError, TypeError) as e:
            logger.warning(f"Password hash could not be verified: {type(e).__name__}")
            return False

    def dummy_verify(self, password: str) -> None:
        """Burn one verification so missing accounts take as long as real ones."""
        self.verify(password or "x", self._dummy_hash)

    def needs_rehash(self, password_hash: str) -> bool:
        """Check whether a hash was produced with outdated parameters."""
        try:
            return self.pwd_context.needs_update(password_hash)
        except (ValueError, TypeError):
            return True

    @staticmethod
    def check_strength(password: str) -> tuple[bool, str]:
        """Validate password strength.

        Args:
            password: The password to validate

        Returns:
            Tuple of (is_valid, message)
        """
        if not password or len(password) < MIN_LENGTH:
            return False, f"Password must be at least {MIN_LENGTH} characters long"

        missing = []
        if not PATTERNS["uppercase"].search(password):
            missing.append("uppercase letter")
        if not PATTERNS["lowercase"].search(password):
            missing.append("lowercase letter")
        if not PATTERNS["digit"].search(password):
            missing.append("number")
        if not PATTERNS["special"].search(password):
            missing.append("special character")

        if missing:
            return False, f"Password must contain at least one {', '.join(missing)}"

        return True, "Password is valid"

    @classmethod
    def is_strong(cls, password: str) -> bool:
        """Pure strength predicate used by registration and reset."""
        return cls.check_strength(password)[0]
