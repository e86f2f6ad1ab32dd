"""Password hashing and JWT issuance/verification.

Both services are constructed once by the application factory and
injected into the use cases and the auth dependencies; nothing here reads
configuration on its own.
"""

from datetime import datetime, timedelta, timezone

import jwt
from passlib.context import CryptContext

from .domain import Claims, Role, User
from .errors import InvalidTokenError, PasswordHashError, PasswordMismatchError, TokenExpiredError

JWT_ALGORITHM = "HS256"
JWT_ISSUER = "task-manager-app"
DEFAULT_HASH_ROUNDS = 29000


class PasswordService:
    """Salted pbkdf2_sha256 hashing with a configurable round count."""

    def __init__(self, rounds: int = DEFAULT_HASH_ROUNDS):
        if rounds <= 0:
            rounds = DEFAULT_HASH_ROUNDS
        self.rounds = rounds
        self._ctx = CryptContext(
            schemes=["pbkdf2_sha256"],
            deprecated="auto",
            pbkdf2_sha256__default_rounds=rounds,
        )

    def hash(self, password: str) -> str:
        return self._ctx.hash(password)

    def compare(self, password: str, password_hash: str) -> None:
        """Return silently when `password` matches `password_hash`.

        Raises `PasswordMismatchError` for a wrong password and
        `PasswordHashError` when the stored digest cannot be parsed.
        """
        try:
            ok = self._ctx.verify(password, password_hash)
        except (ValueError, TypeError) as exc:
            raise PasswordHashError() from exc
        if not ok:
            raise PasswordMismatchError()


class TokenService:
    """Issue and verify HS256-signed access tokens."""

    def __init__(self, secret: str, expire_hours: int = 24, issuer: str = JWT_ISSUER):
        if not secret:
            raise ValueError("token secret must not be empty")
        self._secret = secret
        self.expire_hours = expire_hours
        self.issuer = issuer

    def issue_token(self, user: User) -> str:
        if not user.id:
            raise ValueError("cannot issue a token for an unsaved user")
        now = datetime.now(timezone.utc)
        payload = {
            "user_id": user.id,
            "username": user.username,
            "role": Role(user.role).value,
            "iat": now,
            "exp": now + timedelta(hours=self.expire_hours),
            "iss": self.issuer,
        }
        return jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)

    def verify_token(self, token: str) -> Claims:
        """Decode `token` and return its claims.

        Expiry raises `TokenExpiredError`; every other failure raises
        `InvalidTokenError` with a `reason` for the logs.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[JWT_ALGORITHM],
                issuer=self.issuer,
                options={"require": ["exp", "iat", "iss"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpiredError() from exc
        except jwt.InvalidAlgorithmError as exc:
            raise InvalidTokenError("algorithm") from exc
        except jwt.InvalidSignatureError as exc:
            raise InvalidTokenError("signature") from exc
        except jwt.DecodeError as exc:
            raise InvalidTokenError("malformed") from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError("claims") from exc
        return self._claims_from_payload(payload)

    @staticmethod
    def _claims_from_payload(payload: dict) -> Claims:
        user_id = payload.get("user_id")
        username = payload.get("username")
        role = payload.get("role")
        if not isinstance(user_id, str) or not user_id:
            raise InvalidTokenError("claims")
        if not isinstance(username, str) or not username:
            raise InvalidTokenError("claims")
        if not Role.is_valid(role):
            raise InvalidTokenError("claims")
        return Claims(
            user_id=user_id,
            username=username,
            role=Role(role),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
