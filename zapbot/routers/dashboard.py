"""Read-only status endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from zapbot.runtime import BotRuntime, get_runtime
from zapbot.schemas.dashboard import ChatListResponse, StatsResponse
from zapbot.services.dashboard_service import build_chats, build_stats, process_memory

router = APIRouter(tags=["dashboard"])


@router.get("/")
async def index(runtime: BotRuntime = Depends(get_runtime)):
    stats = build_stats(runtime.store, runtime.sessions)
    return {
        "status": "✅ Bot WhatsApp + Gemini está rodando!",
        "uptime": stats["uptime"],
        "stats": {
            "total_messages": stats["total_messages"],
            "total_chats": stats["total_chats"],
            "active_chats": stats["active_chats"],
            "voice_chats": stats["voice_chats"],
            "audio_messages": stats["audio_messages"],
            "last_activity": stats["last_activity"],
        },
        "timestamp": stats["timestamp"],
        "endpoints": {
            "/": "Status e estatísticas",
            "/ping": "Health check",
            "/health": "Status detalhado",
            "/api/stats": "Contadores",
            "/api/chats": "Conversas",
        },
    }


@router.get("/ping")
async def ping(runtime: BotRuntime = Depends(get_runtime)):
    return {
        "status": "pong",
        "timestamp": datetime.now(timezone.utc),
        "uptime": runtime.store.stats.uptime_seconds(),
    }


@router.get("/health")
async def health(runtime: BotRuntime = Depends(get_runtime)):
    stats = runtime.store.stats
    return {
        "status": "ok",
        "whatsapp": stats.connection_status,
        "authenticated": stats.is_authenticated,
        "gemini": "configured" if runtime.settings.gemini_api_key else "not_configured",
        "server": "online",
        "memory": process_memory(),
        "timestamp": datetime.now(timezone.utc),
    }


@router.get("/api/stats", response_model=StatsResponse)
async def get_stats(runtime: BotRuntime = Depends(get_runtime)):
    return build_stats(runtime.store, runtime.sessions)


@router.get("/api/chats", response_model=ChatListResponse)
async def list_chats(runtime: BotRuntime = Depends(get_runtime)):
    chats = build_chats(runtime.store, runtime.sessions)
    return {"total": len(chats), "chats": chats}
