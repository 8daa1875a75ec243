import asyncio
from unittest.mock import AsyncMock, patch

import httpx

from zapbot.services.media_service import MediaCache
from zapbot.services.whatsapp_service import AudioAttachment, WhatsAppGateway, is_allowed_media_url

RealAsyncClient = httpx.AsyncClient
JID = "5511999990000@c.us"


def make_gateway(token="tok", instance_id="inst", max_audio_bytes=1024):
    media = MediaCache(secret="test-secret", public_base_url="https://bot.example.com")
    return WhatsAppGateway(
        api_url="https://app.chatflow.kz/api/v1/send-text",
        media_api_url="https://app.chatflow.kz/api/v1/send-audio",
        token=token,
        instance_id=instance_id,
        media_cache=media,
        allowed_hosts=["app.chatflow.kz"],
        max_audio_bytes=max_audio_bytes,
    )


def patched_client(handler):
    return patch(
        "zapbot.services.whatsapp_service.httpx.AsyncClient",
        side_effect=lambda **kwargs: RealAsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestAllowedHosts:
    def test_exact_and_subdomain(self):
        assert is_allowed_media_url("https://app.chatflow.kz/f.ogg", ["app.chatflow.kz"])
        assert is_allowed_media_url("https://cdn.app.chatflow.kz/f.ogg", ["app.chatflow.kz"])

    def test_rejects_other_hosts_and_schemes(self):
        assert not is_allowed_media_url("https://evil.example.com/f.ogg", ["app.chatflow.kz"])
        assert not is_allowed_media_url("file:///etc/passwd", ["app.chatflow.kz"])


class TestSendText:
    def test_sends_query_params(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"success": True})

        with patched_client(handler):
            assert asyncio.run(make_gateway().send_text(JID, "Olá")) is True

        assert seen["params"] == {"token": "tok", "instance_id": "inst", "jid": JID, "msg": "Olá"}

    def test_missing_token(self):
        assert asyncio.run(make_gateway(token=None).send_text(JID, "Olá")) is False

    def test_empty_message(self):
        assert asyncio.run(make_gateway().send_text(JID, "")) is False

    def test_non_200(self):
        with patched_client(lambda request: httpx.Response(500, text="error")):
            assert asyncio.run(make_gateway().send_text(JID, "Olá")) is False

    @patch("zapbot.services.whatsapp_service.alert_critical", new_callable=AsyncMock)
    def test_network_error_alerts(self, mock_alert):
        def handler(request):
            raise httpx.ConnectError("refused")

        with patched_client(handler):
            assert asyncio.run(make_gateway().send_text(JID, "Olá")) is False

        mock_alert.assert_awaited_once()


class TestSendAudio:
    def test_publishes_signed_url(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"success": True})

        gateway = make_gateway()
        with patched_client(handler):
            assert asyncio.run(gateway.send_audio(JID, b"RIFFaudio", "audio/wav")) is True

        assert seen["params"]["audiourl"].startswith("https://bot.example.com/media/")
        assert len(gateway.media_cache) == 1

    def test_gateway_reports_failure(self):
        with patched_client(lambda request: httpx.Response(200, json={"success": False})):
            assert asyncio.run(make_gateway().send_audio(JID, b"RIFFaudio")) is False

    def test_no_audio(self):
        assert asyncio.run(make_gateway().send_audio(JID, b"")) is False


class TestDownloadAudio:
    def test_inline_base64(self):
        attachment = AudioAttachment(base64_data="T2dnUw==")

        assert asyncio.run(make_gateway().download_audio(attachment)) == b"OggS"

    def test_inline_too_large(self):
        attachment = AudioAttachment(base64_data="T2dnUw==")

        assert asyncio.run(make_gateway(max_audio_bytes=2).download_audio(attachment)) is None

    def test_declared_size_over_cap_skips_download(self):
        def handler(request):
            raise AssertionError("download must not start")

        attachment = AudioAttachment(url="https://app.chatflow.kz/media/a.ogg", size_bytes=4096)
        with patched_client(handler):
            assert asyncio.run(make_gateway().download_audio(attachment)) is None

    def test_declared_size_within_cap(self):
        attachment = AudioAttachment(base64_data="T2dnUw==", size_bytes=4)

        assert asyncio.run(make_gateway().download_audio(attachment)) == b"OggS"

    def test_download_from_allowed_host(self):
        with patched_client(lambda request: httpx.Response(200, content=b"OggSdata")):
            data = asyncio.run(
                make_gateway().download_audio(AudioAttachment(url="https://app.chatflow.kz/media/a.ogg"))
            )

        assert data == b"OggSdata"

    def test_blocked_host(self):
        attachment = AudioAttachment(url="https://evil.example.com/a.ogg")

        assert asyncio.run(make_gateway().download_audio(attachment)) is None

    def test_download_aborts_when_too_large(self):
        with patched_client(lambda request: httpx.Response(200, content=b"x" * 2048)):
            data = asyncio.run(
                make_gateway().download_audio(AudioAttachment(url="https://app.chatflow.kz/media/a.ogg"))
            )

        assert data is None

    def test_download_http_error(self):
        with patched_client(lambda request: httpx.Response(404)):
            data = asyncio.run(
                make_gateway().download_audio(AudioAttachment(url="https://app.chatflow.kz/media/a.ogg"))
            )

        assert data is None

    def test_nothing_to_download(self):
        assert asyncio.run(make_gateway().download_audio(AudioAttachment())) is None
