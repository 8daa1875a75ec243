from pydantic_settings import BaseSettings

DEFAULT_SYSTEM_PROMPT = (
    "Você é um assistente prestativo no WhatsApp. "
    "Responda em português, de forma clara, amigável e objetiva."
)


class Settings(BaseSettings):
    port: int = 10000
    cors_allow_origins: str = "*"
    log_level: str = "INFO"

    # Conversation
    context_window: int = 20
    default_system_prompt: str = DEFAULT_SYSTEM_PROMPT
    max_prompt_length: int = 1000
    default_voice: str = "Kore"
    conversation_ttl_seconds: int = 0
    eviction_interval_seconds: float = 300.0
    eviction_worker_enabled: bool = True

    # always | follow_toggle
    audio_reply_policy: str = "always"

    # Gemini
    gemini_api_key: str | None = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_text_model: str = "gemini-2.0-flash-exp"
    gemini_audio_model: str = "gemini-2.0-flash"
    gemini_tts_model: str = "gemini-2.5-flash-preview-tts"
    gemini_timeout_seconds: float = 60.0

    # WhatsApp gateway
    whatsapp_api_url: str = "https://app.chatflow.kz/api/v1/send-text"
    whatsapp_media_api_url: str = "https://app.chatflow.kz/api/v1/send-audio"
    whatsapp_token: str | None = None
    whatsapp_instance_id: str | None = None
    whatsapp_media_hosts: str = "app.chatflow.kz"
    max_audio_mb: float = 8.0

    # Signed media URLs for outbound audio
    media_signing_secret: str | None = None
    public_base_url: str = "http://localhost:10000"
    media_url_ttl_seconds: int = 3600

    # Telegram alerts
    alert_bot_token: str | None = None
    alert_chat_id: str | None = None

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
