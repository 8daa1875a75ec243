import base64
import binascii
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import httpx

from zapbot.logging_config import get_logger
from zapbot.services.alert_service import alert_critical
from zapbot.services.media_service import MediaCache

logger = get_logger("whatsapp_service")


@dataclass
class AudioAttachment:
    mime_type: Optional[str] = None
    url: Optional[str] = None
    base64_data: Optional[str] = None
    size_bytes: Optional[int] = None
    is_ptt: bool = False


def is_allowed_media_url(url: str, allowed_hosts: list[str]) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in {"http", "https"}:
        return False
    host = (parsed.hostname or "").lower()
    return any(host == allowed or host.endswith(f".{allowed}") for allowed in allowed_hosts)


class WhatsAppGateway:
    """Sends replies through the WhatsApp gateway HTTP API and fetches inbound audio."""

    def __init__(
        self,
        *,
        api_url: str,
        media_api_url: str,
        token: Optional[str],
        instance_id: Optional[str],
        media_cache: MediaCache,
        allowed_hosts: Optional[list[str]] = None,
        max_audio_bytes: int = 8 * 1024 * 1024,
        timeout_seconds: float = 30.0,
    ):
        self.api_url = api_url
        self.media_api_url = media_api_url
        self.token = token
        self.instance_id = instance_id
        self.media_cache = media_cache
        self.allowed_hosts = [host.strip().lower() for host in (allowed_hosts or []) if host.strip()]
        self.max_audio_bytes = max_audio_bytes
        self.timeout_seconds = timeout_seconds

    def _check_config(self, remote_jid: str) -> bool:
        if not self.token:
            logger.error("WhatsApp gateway token is missing (WHATSAPP_TOKEN env var not set)")
            return False
        if not self.instance_id:
            logger.error("WhatsApp instance id is missing (WHATSAPP_INSTANCE_ID env var not set)")
            return False
        if not remote_jid:
            logger.warning("WhatsApp send without jid")
            return False
        return True

    async def send_text(self, remote_jid: str, message: str) -> bool:
        """Send a text message. Never raises."""
        if not message or not self._check_config(remote_jid):
            return False

        params = {
            "token": self.token,
            "instance_id": self.instance_id,
            "jid": remote_jid,
            "msg": message,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.get(self.api_url, params=params)
            logger.info(f"WhatsApp response: status={response.status_code}, jid={remote_jid}, body={response.text[:200]}")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(f"Error sending WhatsApp message: {e}")
            await alert_critical("WhatsApp send failed", {"jid": remote_jid, "error": str(e)})
            return False

    async def send_audio(self, remote_jid: str, audio: bytes, mime_type: Optional[str] = None) -> bool:
        """Publish audio under a signed URL and ask the gateway to deliver it as a voice note."""
        if not audio or not self._check_config(remote_jid):
            return False

        media_url = self.media_cache.publish(audio, mime_type)
        if not media_url:
            return False

        params = {
            "token": self.token,
            "instance_id": self.instance_id,
            "jid": remote_jid,
            "audiourl": media_url,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.get(self.media_api_url, params=params)
            logger.info(
                f"WhatsApp media response: status={response.status_code}, jid={remote_jid}, body={response.text[:200]}"
            )
            if response.status_code != 200:
                return False
            try:
                payload = response.json()
            except ValueError:
                return False
            return bool(payload.get("success"))
        except httpx.HTTPError as e:
            logger.error(f"Error sending WhatsApp audio: {e}")
            await alert_critical("WhatsApp audio send failed", {"jid": remote_jid, "error": str(e)})
            return False

    async def download_audio(self, attachment: AudioAttachment) -> Optional[bytes]:
        """Inline base64 payload if present, else download from an allow-listed host."""
        if self.max_audio_bytes and attachment.size_bytes and attachment.size_bytes > self.max_audio_bytes:
            logger.warning(f"Inbound audio declared too large: {attachment.size_bytes} bytes")
            return None

        if attachment.base64_data:
            try:
                data = base64.b64decode(attachment.base64_data, validate=False)
            except (binascii.Error, ValueError) as e:
                logger.warning(f"Invalid base64 audio payload: {e}")
                return None
            if self.max_audio_bytes and len(data) > self.max_audio_bytes:
                logger.warning(f"Inbound audio too large: {len(data)} bytes")
                return None
            return data

        if not attachment.url:
            return None
        if not is_allowed_media_url(attachment.url, self.allowed_hosts):
            logger.warning(f"Blocked media host: {attachment.url[:100]}")
            return None

        data = bytearray()
        try:
            async with httpx.AsyncClient(timeout=15.0) as client:
                async with client.stream("GET", attachment.url) as response:
                    response.raise_for_status()
                    async for chunk in response.aiter_bytes():
                        data.extend(chunk)
                        if self.max_audio_bytes and len(data) > self.max_audio_bytes:
                            logger.warning("Inbound audio too large, download aborted")
                            return None
        except httpx.HTTPError as e:
            logger.error(f"Audio download failed: {e}")
            return None
        return bytes(data)
