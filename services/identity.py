# backend/services/identity.py
from dataclasses import dataclass

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from services.errors import AuthenticationError


@dataclass(frozen=True)
class VerifiedIdentity:
    uid: str
    email: str | None


class TokenIdentity:
    """Issues and verifies signed bearer tokens carrying ``{uid, email}``."""

    salt = "identity"

    def __init__(self, secret_key, max_age=None):
        self._serializer = URLSafeTimedSerializer(secret_key, salt=self.salt)
        self._max_age = max_age

    def issue_token(self, uid, email=None):
        return self._serializer.dumps({"uid": uid, "email": email})

    def verify(self, token) -> VerifiedIdentity:
        if not token:
            raise AuthenticationError("Authentication required")
        try:
            claims = self._serializer.loads(token, max_age=self._max_age)
        except SignatureExpired:
            raise AuthenticationError("Token expired")
        except BadSignature:
            raise AuthenticationError("Invalid token")

        if not isinstance(claims, dict) or not claims.get("uid"):
            raise AuthenticationError("Invalid token")
        return VerifiedIdentity(uid=claims["uid"], email=claims.get("email"))
