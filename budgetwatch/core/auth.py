from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
import time
import uuid
from dataclasses import dataclass

from fastapi import HTTPException, Request, status

from budgetwatch.core.config import settings


@dataclass
class SessionUser:
    user_id: str
    username: str

    @property
    def id(self) -> uuid.UUID:
        return uuid.UUID(self.user_id)


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(token: str) -> bytes:
    padding = "=" * (-len(token) % 4)
    return base64.urlsafe_b64decode((token + padding).encode("ascii"))


def hash_password(password: str, salt: str | None = None) -> tuple[str, str]:
    password = (password or "").strip()
    if not password:
        raise ValueError("Password cannot be empty")
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), 120_000)
    return digest.hex(), salt


def verify_password(password: str, expected_hash: str, salt: str) -> bool:
    try:
        calculated, _ = hash_password(password, salt=salt)
    except ValueError:
        return False
    return hmac.compare_digest(calculated, expected_hash)


def _sign(payload_b64: str) -> str:
    return hmac.new(settings.auth_secret.encode("utf-8"), payload_b64.encode("utf-8"), hashlib.sha256).hexdigest()


def create_session_token(*, user_id: str, username: str) -> str:
    now = int(time.time())
    payload = {
        "uid": user_id,
        "usr": username,
        "iat": now,
        "exp": now + int(settings.auth_session_hours * 3600),
    }
    payload_b64 = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    return payload_b64 + "." + _sign(payload_b64)


def parse_session_token(token: str | None) -> SessionUser | None:
    if not token or "." not in token:
        return None
    payload_b64, sig = token.split(".", 1)
    if not hmac.compare_digest(sig, _sign(payload_b64)):
        return None
    try:
        payload = json.loads(_b64url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    if int(payload.get("exp", 0)) <= int(time.time()):
        return None
    uid = str(payload.get("uid", "")).strip()
    usr = str(payload.get("usr", "")).strip()
    if not uid or not usr:
        return None
    try:
        uuid.UUID(uid)
    except ValueError:
        return None
    return SessionUser(user_id=uid, username=usr)


def get_current_user(request: Request) -> SessionUser:
    user = getattr(request.state, "user", None)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user
