"""Short-lived in-memory storage for generated voice replies, served via signed URLs.

The WhatsApp gateway only accepts audio by URL, so each outbound voice note is
parked here and exposed at /media/<token>?expires=...&sig=...
"""

import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from zapbot.logging_config import get_logger

logger = get_logger("media_service")

MIN_TTL_SECONDS = 60


@dataclass
class StoredMedia:
    data: bytes
    mime_type: str
    expires: int


def sign_media_path(path: str, expires: int, secret: str) -> str:
    payload = f"{path}:{expires}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


class MediaCache:
    def __init__(self, *, secret: Optional[str], public_base_url: str, ttl_seconds: int = 3600):
        self.secret = secret
        self.public_base_url = public_base_url.rstrip("/")
        self.ttl_seconds = max(int(ttl_seconds), MIN_TTL_SECONDS)
        self._items: dict[str, StoredMedia] = {}

    def __len__(self) -> int:
        return len(self._items)

    def purge_expired(self, now_ts: Optional[int] = None) -> int:
        now_ts = now_ts if now_ts is not None else int(time.time())
        expired = [token for token, item in self._items.items() if item.expires < now_ts]
        for token in expired:
            del self._items[token]
        return len(expired)

    def put(self, data: bytes, mime_type: Optional[str]) -> tuple[str, int]:
        self.purge_expired()
        token = secrets.token_urlsafe(16)
        expires = int(time.time()) + self.ttl_seconds
        self._items[token] = StoredMedia(data=data, mime_type=mime_type or "application/octet-stream", expires=expires)
        return token, expires

    def get(self, token: str) -> Optional[StoredMedia]:
        item = self._items.get(token)
        if item is None:
            return None
        if item.expires < int(time.time()):
            del self._items[token]
            return None
        return item

    def build_signed_url(self, token: str, expires: int) -> Optional[str]:
        if not self.secret:
            logger.error("MEDIA_SIGNING_SECRET not configured")
            return None
        signature = sign_media_path(token, expires, self.secret)
        return f"{self.public_base_url}/media/{quote(token, safe='')}?expires={expires}&sig={signature}"

    def publish(self, data: bytes, mime_type: Optional[str]) -> Optional[str]:
        """Store audio and return a signed public URL for it."""
        if not self.secret:
            logger.error("MEDIA_SIGNING_SECRET not configured")
            return None
        token, expires = self.put(data, mime_type)
        return self.build_signed_url(token, expires)

    def verify(self, token: str, expires: int, signature: str) -> bool:
        if not self.secret:
            logger.error("MEDIA_SIGNING_SECRET not configured")
            return False
        if not signature:
            return False
        if expires < int(time.time()):
            return False
        expected = sign_media_path(token, expires, self.secret)
        return hmac.compare_digest(expected, signature)
