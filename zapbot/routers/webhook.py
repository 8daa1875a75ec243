import re

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from starlette.requests import ClientDisconnect

from zapbot.logging_config import get_logger
from zapbot.runtime import BotRuntime, get_runtime
from zapbot.schemas.webhook import (
    ConnectionEventRequest,
    ConnectionEventResponse,
    WebhookBody,
    WebhookRequest,
    WebhookResponse,
)
from zapbot.services.connection_service import handle_connection_event
from zapbot.services.inbound_service import InboundEvent
from zapbot.services.whatsapp_service import AudioAttachment

logger = get_logger("webhook")

router = APIRouter()

AUDIO_MESSAGE_TYPES = {"audio", "voice", "ptt"}


def _coerce_remote_jid(value) -> str | None:
    if not value or isinstance(value, (dict, list, tuple)):
        return None
    text = str(value).strip()
    if not text:
        return None
    if "@" in text:
        return text
    digits = re.sub(r"\D", "", text)
    if not digits:
        return None
    return f"{digits}@c.us"


def _first_value(source: dict, keys: tuple[str, ...]):
    for key in keys:
        value = source.get(key)
        if value not in (None, ""):
            return value
    return None


def _normalize_gateway_payload(payload: dict) -> dict:
    """Accept both the nested {"body": {...}} shape and flat gateway events."""
    body = payload.get("body")
    if not isinstance(body, dict):
        body = payload

    body = dict(body)
    metadata = dict(body.get("metadata")) if isinstance(body.get("metadata"), dict) else {}
    msg_obj = payload.get("message") if isinstance(payload.get("message"), dict) else None

    remote_jid = metadata.get("remoteJid") or _first_value(
        payload, ("remoteJid", "remote_jid", "jid", "from", "chatId")
    )
    if not remote_jid and msg_obj:
        remote_jid = _first_value(msg_obj, ("remoteJid", "from", "chatId"))
    remote_jid = _coerce_remote_jid(remote_jid)
    if remote_jid:
        metadata["remoteJid"] = remote_jid

    for field, keys in (
        ("messageId", ("messageId", "message_id", "id")),
        ("timestamp", ("timestamp", "t", "time")),
        ("sender", ("sender", "pushName", "name")),
        ("fromMe", ("fromMe", "from_me", "isFromMe")),
        ("isGroup", ("isGroup", "is_group", "isGroupMsg")),
    ):
        if metadata.get(field) is not None:
            continue
        value = _first_value(payload, keys)
        if value is None and msg_obj:
            value = _first_value(msg_obj, keys)
        if value is not None:
            metadata[field] = value

    message = body.get("message")
    if not isinstance(message, str):
        message = None
        for source in (payload, msg_obj or {}):
            value = _first_value(source, ("text", "body", "message_text", "content", "caption"))
            if isinstance(value, str):
                message = value
                break
    body["message"] = message

    if not body.get("mediaData") and msg_obj and isinstance(msg_obj.get("mediaData"), dict):
        body["mediaData"] = msg_obj["mediaData"]
    if not body.get("messageType"):
        body["messageType"] = _first_value(payload, ("messageType", "type")) or "text"

    body["metadata"] = metadata
    return body


def _extract_audio(body: WebhookBody) -> AudioAttachment | None:
    media = body.mediaData if isinstance(body.mediaData, dict) else None
    message_type = (body.messageType or "").strip().lower()
    mime = None
    if media:
        mime = media.get("mimetype") or media.get("mimeType") or media.get("mime")
    is_audio = message_type in AUDIO_MESSAGE_TYPES or (isinstance(mime, str) and mime.startswith("audio/"))
    if not is_audio or not media:
        return None

    size_bytes = None
    size_value = media.get("size") or media.get("fileLength")
    if size_value is not None:
        try:
            size_bytes = int(size_value)
        except (TypeError, ValueError):
            size_bytes = None

    url = media.get("url")
    base64_data = media.get("base64") or media.get("data")
    return AudioAttachment(
        mime_type=mime if isinstance(mime, str) else None,
        url=url if isinstance(url, str) else None,
        base64_data=base64_data if isinstance(base64_data, str) else None,
        size_bytes=size_bytes,
        is_ptt=bool(media.get("ptt")) or message_type == "ptt",
    )


def build_inbound_event(request: WebhookRequest) -> InboundEvent | None:
    body = request.body
    metadata = body.metadata
    if metadata is None or not metadata.remoteJid:
        return None
    return InboundEvent(
        chat_id=metadata.remoteJid,
        body=body.message or "",
        is_group=metadata.isGroup,
        from_me=metadata.fromMe,
        audio=_extract_audio(body),
        message_id=metadata.messageId,
    )


async def _parse_webhook_request(request: Request) -> WebhookRequest | WebhookResponse:
    try:
        payload = await request.json()
    except ClientDisconnect:
        logger.info("Webhook client disconnected during read")
        return WebhookResponse(success=True, message="Client disconnected")
    except ValueError as exc:
        raw = await request.body()
        if not raw or not raw.strip():
            logger.info("Webhook probe with empty body")
            return WebhookResponse(success=True, message="Empty payload")
        logger.warning(
            "Webhook payload is not valid JSON",
            extra={"context": {"error": str(exc), "body_preview": raw[:200].decode("utf-8", "ignore")}},
        )
        return WebhookResponse(success=False, message="Invalid JSON payload")

    if not isinstance(payload, dict):
        return WebhookResponse(success=False, message="Invalid payload format")

    body = _normalize_gateway_payload(payload)
    try:
        return WebhookRequest(body=body)
    except ValueError as exc:
        logger.warning("Webhook payload validation failed", extra={"context": {"error": str(exc)}})
        return WebhookResponse(success=False, message="Invalid webhook payload")


@router.post("/webhook", response_model=WebhookResponse)
async def handle_webhook(request: Request, runtime: BotRuntime = Depends(get_runtime)):
    """Inbound WhatsApp message from the gateway."""
    parsed = await _parse_webhook_request(request)
    if isinstance(parsed, WebhookResponse):
        return parsed

    event = build_inbound_event(parsed)
    if event is None:
        logger.info("Webhook payload without remoteJid", extra={"context": {"body_keys": list(parsed.body.model_dump())}})
        return WebhookResponse(success=False, message="Missing remoteJid")

    outcome = await runtime.router.handle(event)
    return WebhookResponse(
        success=True,
        message=f"Processed: {outcome.status.value}",
        status=outcome.status.value,
        bot_response=outcome.reply,
    )


@router.post("/webhook/connection", response_model=ConnectionEventResponse)
async def handle_connection(request: ConnectionEventRequest, runtime: BotRuntime = Depends(get_runtime)):
    """Gateway lifecycle signal (qr, authenticated, auth_failure, ready, disconnected)."""
    stats = runtime.store.stats
    await handle_connection_event(request.event, stats, runtime.sessions, reason=request.reason, qr=request.qr)
    return ConnectionEventResponse(
        success=True,
        connection_status=stats.connection_status,
        is_authenticated=stats.is_authenticated,
    )


@router.get("/media/{token}")
async def serve_media(token: str, expires: int, sig: str, runtime: BotRuntime = Depends(get_runtime)):
    """Serve a generated voice reply via its signed URL."""
    if not runtime.media.verify(token, expires, sig):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired signature")
    item = runtime.media.get(token)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media not found")
    return Response(content=item.data, media_type=item.mime_type)
