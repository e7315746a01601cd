"""Access and refresh token issuance for shopauth.

Access tokens are stateless signed JWTs: validation needs no store
round-trip. Refresh tokens are opaque random strings that the server only
ever stores as a SHA-256 fingerprint.
"""

import hashlib
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from shopauth.auth.models import Account, Principal, TokenPair
from shopauth.core.exceptions import MalformedTokenError
from shopauth.core.settings import Settings

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"

# Leeway used when only the expiry of an already-issued token is needed
EXPIRY_LOOKUP_LEEWAY_SECONDS = 60


class TokenSigner:
    """Issues and validates access tokens, generates refresh tokens.

    The signing key, algorithm, issuer, audience and lifetimes are captured
    from ``Settings`` at construction; issuance and validation always use
    the same key and algorithm.
    """

    def __init__(self, settings: Settings):
        """Initialize the signer.

        Args:
            settings: Immutable shopauth settings
        """
        self.secret_key = settings.secret_key
        self.algorithm = settings.algorithm
        self.issuer = settings.issuer
        self.audience = settings.audience
        self.access_token_expire_minutes = settings.access_token_expire_minutes
        self.clock_skew_seconds = settings.clock_skew_seconds

    def issue_access_token(
        self,
        account: Account,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Create a signed access token for an account.

        Args:
            account: The account the token is issued to
            expires_delta: Optional custom lifetime

        Returns:
            The encoded JWT
        """
        now = datetime.now(timezone.utc)
        expire = now + (
            expires_delta or timedelta(minutes=self.access_token_expire_minutes)
        )
        claims = {
            "sub": str(account.id),
            "email": account.email,
            "role": account.role,
            "jti": str(uuid.uuid4()),
            "iat": now,
            "nbf": now,
            "exp": expire,
            "iss": self.issuer,
            "aud": self.audience,
            "type": ACCESS_TOKEN_TYPE,
        }
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    @staticmethod
    def issue_refresh_token() -> str:
        """Generate an opaque refresh token (512 random bits, base64url)."""
        return secrets.token_urlsafe(64)

    @staticmethod
    def hash_refresh_token(token: str) -> str:
        """Fingerprint a refresh token for storage.

        Args:
            token: The opaque refresh token

        Returns:
            SHA-256 hex digest of the token
        """
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    def issue_token_pair(self, account: Account) -> TokenPair:
        """Issue a fresh access token and refresh token together."""
        return TokenPair(
            access_token=self.issue_access_token(account),
            refresh_token=self.issue_refresh_token(),
            expires_in=self.access_token_expire_minutes * 60,
        )

    def _decode(self, token: str, options: dict, leeway: int) -> dict:
        return jwt.decode(
            token,
            self.secret_key,
            algorithms=[self.algorithm],
            audience=self.audience,
            issuer=self.issuer,
            options={**options, "leeway": leeway},
        )

    def validate(self, token: str) -> Principal | None:
        """Validate an access token.

        Checks signature, issuer, audience, expiry and token type. Never
        raises: any failure is logged and reported as ``None``.

        Args:
            token: The encoded JWT

        Returns:
            The principal, or None when the token is not acceptable
        """
        if not token:
            return None
        try:
            payload = self._decode(token, {}, self.clock_skew_seconds)
        except ExpiredSignatureError:
            logger.info("Access token rejected: expired")
            return None
        except JWTClaimsError as e:
            logger.warning(f"Access token rejected: invalid claims ({e})")
            return None
        except JWTError as e:
            logger.warning(f"Access token rejected: {e}")
            return None

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            logger.warning("Access token rejected: wrong token type")
            return None

        try:
            return Principal(
                account_id=uuid.UUID(payload["sub"]),
                email=payload["email"],
                role=payload["role"],
                token_id=payload["jti"],
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Access token rejected: missing or invalid claim ({e})")
            return None

    def expiry_of(self, token: str) -> datetime:
        """Extract the expiry of an access token without checking freshness.

        The signature, issuer and audience are still verified so a forged
        token cannot dictate how long something is remembered.

        Args:
            token: The encoded JWT

        Returns:
            The token's expiry as an aware UTC datetime

        Raises:
            MalformedTokenError: If the token cannot be parsed
        """
        try:
            payload = self._decode(
                token,
                {"verify_exp": False, "verify_nbf": False, "verify_iat": False},
                EXPIRY_LOOKUP_LEEWAY_SECONDS,
            )
            return datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (JWTError, KeyError, ValueError, TypeError) as e:
            logger.warning(f"Could not read token expiry: {type(e).__name__}")
            raise MalformedTokenError("Token could not be parsed") from e
