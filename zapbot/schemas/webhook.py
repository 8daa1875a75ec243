from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field

from zapbot.services.connection_service import ConnectionEvent


class WebhookMetadata(BaseModel):
    sender: Optional[str] = None
    timestamp: Optional[int] = None
    messageId: Optional[str] = None
    remoteJid: Optional[str] = None
    fromMe: bool = Field(default=False, validation_alias=AliasChoices("fromMe", "from_me", "isFromMe"))
    isGroup: bool = Field(default=False, validation_alias=AliasChoices("isGroup", "is_group", "isGroupMsg"))


class WebhookBody(BaseModel):
    messageType: Optional[str] = "text"
    message: Optional[str] = None
    metadata: Optional[WebhookMetadata] = None
    mediaData: Optional[Any] = None


class WebhookRequest(BaseModel):
    body: WebhookBody


class WebhookResponse(BaseModel):
    success: bool
    message: str
    status: Optional[str] = None
    bot_response: Optional[str] = None


class ConnectionEventRequest(BaseModel):
    event: ConnectionEvent
    reason: Optional[str] = None
    qr: Optional[str] = None


class ConnectionEventResponse(BaseModel):
    success: bool
    connection_status: str
    is_authenticated: bool
