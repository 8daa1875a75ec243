from zapbot.schemas.dashboard import ChatListResponse, ChatSummary, StatsResponse
from zapbot.schemas.webhook import (
    ConnectionEventRequest,
    ConnectionEventResponse,
    WebhookBody,
    WebhookMetadata,
    WebhookRequest,
    WebhookResponse,
)

__all__ = [
    "ChatListResponse",
    "ChatSummary",
    "StatsResponse",
    "ConnectionEventRequest",
    "ConnectionEventResponse",
    "WebhookBody",
    "WebhookMetadata",
    "WebhookRequest",
    "WebhookResponse",
]
