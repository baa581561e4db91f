"""
Tests for the HTTP API surface.
"""

import asyncio
import base64

import httpx
import pytest
from fastapi.testclient import TestClient

from app.config import SERVICE_VERSION, Settings
from app.main import app
from app.routers import generation, render, webhooks
from app.services.asset_resolver import FetchFailedError, InlineAsset, RemoteAsset
from app.services.content_generator import (
    ContentGenerationError,
    ContentGenerationService,
    GeneratedImage,
)
from app.services.render_pipeline import NoUsableImagesError
from app.services.result_packager import RenderArtifact
from app.services.speech_service import SpeechSynthesisError
from app.services.subscription_service import (
    MissingUserIdError,
    SubscriptionConfigError,
    SubscriptionStoreError,
    WebhookOutcome,
)
from app.services.transcription_service import (
    CaptionWord,
    TranscriptionError,
    TranscriptionService,
)
from app.services.video_encoder import EncodeError

VALID_RENDER_BODY = {
    "audioUrl": "https://cdn.test/audio.mp3",
    "images": ["https://cdn.test/a.png", "data:image/png;base64,iVBORw0KGgo="],
    "duration": 9,
}


@pytest.fixture
def client():
    """Test client without lifespan; services are provided per test."""
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def pipeline(mocker):
    fake = mocker.MagicMock()
    fake.render = mocker.AsyncMock(
        return_value=RenderArtifact(data=b"fake-mp4", mime_type="video/mp4", size_bytes=8)
    )
    app.dependency_overrides[render.get_render_pipeline] = lambda: fake
    return fake


class TestRootAndHealth:
    """Tests for the informational endpoints."""

    def test_root(self, client):
        """Test the root endpoint."""
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client):
        """Test liveness."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": SERVICE_VERSION}

    def test_versions_agree(self, client):
        """Test that the root, health and OpenAPI versions are the same value."""
        assert client.get("/").json()["version"] == SERVICE_VERSION
        assert client.get("/health").json()["version"] == SERVICE_VERSION
        assert app.version == SERVICE_VERSION

    def test_readiness_without_services(self, client):
        """Test readiness before startup has wired the services."""
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["ready"] is False


class TestRenderVideo:
    """Tests for POST /api/render-video."""

    def test_success_shape(self, client, pipeline):
        """Test the response body of a successful render."""
        response = client.post("/api/render-video", json=VALID_RENDER_BODY)

        assert response.status_code == 200
        body = response.json()
        assert body == {
            "video": base64.b64encode(b"fake-mp4").decode("ascii"),
            "contentType": "video/mp4",
            "size": 8,
        }

    def test_assets_classified_at_ingestion(self, client, pipeline):
        """Test the job handed to the pipeline."""
        client.post("/api/render-video", json=VALID_RENDER_BODY)

        job = pipeline.render.call_args.args[0]
        assert job.audio == RemoteAsset("https://cdn.test/audio.mp3")
        assert isinstance(job.images[0], RemoteAsset)
        assert isinstance(job.images[1], InlineAsset)
        assert job.total_duration_seconds == 9

    @pytest.mark.parametrize(
        "body",
        [
            {"images": ["https://cdn.test/a.png"], "duration": 5},
            {"audioUrl": "https://cdn.test/a.mp3", "duration": 5},
            {"audioUrl": "https://cdn.test/a.mp3", "images": ["https://cdn.test/a.png"]},
            {"audioUrl": "https://cdn.test/a.mp3", "images": [], "duration": 5},
            {"audioUrl": "https://cdn.test/a.mp3", "images": ["https://cdn.test/a.png"], "duration": 0},
            {"audioUrl": "https://cdn.test/a.mp3", "images": ["https://cdn.test/a.png"], "duration": -3},
            {"audioUrl": "", "images": ["https://cdn.test/a.png"], "duration": 5},
            {"audioUrl": "https://cdn.test/a.mp3", "images": ["  "], "duration": 5},
            {"audioUrl": "https://cdn.test/a.mp3", "images": "https://cdn.test/a.png", "duration": 5},
        ],
    )
    def test_invalid_body_is_400(self, client, pipeline, body):
        """Test request validation failures."""
        response = client.post("/api/render-video", json=body)

        assert response.status_code == 400
        assert "error" in response.json()
        pipeline.render.assert_not_called()

    def test_missing_field_named_in_error(self, client, pipeline):
        """Test that the wire name of the missing field is reported."""
        response = client.post("/api/render-video", json={"images": ["x"], "duration": 1})
        assert "audioUrl" in response.json()["error"]

    def test_malformed_json_is_400(self, client, pipeline):
        """Test a body that is not JSON."""
        response = client.post(
            "/api/render-video",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    @pytest.mark.parametrize(
        "error,message",
        [
            (NoUsableImagesError("No images were processed successfully"), "No images were processed successfully"),
            (FetchFailedError("Failed to download x: HTTP 404", status_code=404), "HTTP 404"),
            (EncodeError("FFmpeg exited with code 1", diagnostics="Invalid data"), "Invalid data"),
        ],
    )
    def test_render_errors_are_500(self, client, pipeline, error, message):
        """Test that pipeline failures surface their message."""
        pipeline.render.side_effect = error

        response = client.post("/api/render-video", json=VALID_RENDER_BODY)

        assert response.status_code == 500
        assert message in response.json()["error"]

    def test_unexpected_error_is_500(self, client, pipeline):
        """Test that unknown errors still produce an error body."""
        pipeline.render.side_effect = RuntimeError("disk on fire")

        response = client.post("/api/render-video", json=VALID_RENDER_BODY)

        assert response.status_code == 500
        assert response.json() == {"error": "disk on fire"}

    def test_timeout_is_500(self, client, pipeline, mocker):
        """Test the render time limit."""
        mocker.patch("app.routers.render.get_settings", return_value=Settings(render_timeout_seconds=1))

        async def slow_render(job):
            await asyncio.sleep(10)

        pipeline.render.side_effect = slow_render

        response = client.post("/api/render-video", json=VALID_RENDER_BODY)

        assert response.status_code == 500
        assert "timed out" in response.json()["error"]

    def test_pipeline_not_initialized(self, client):
        """Test 503 when startup has not wired the pipeline."""
        response = client.post("/api/render-video", json=VALID_RENDER_BODY)

        assert response.status_code == 503
        assert response.json() == {"error": "Render pipeline not initialized"}

    def test_wrong_method_is_405(self, client):
        """Test that non-POST requests get an error body."""
        response = client.get("/api/render-video")

        assert response.status_code == 405
        assert "error" in response.json()


class TestGenerationEndpoints:
    """Tests for the generation proxies."""

    @pytest.fixture
    def speech(self, mocker):
        fake = mocker.MagicMock()
        fake.synthesize = mocker.AsyncMock(return_value=b"mp3-bytes")
        app.dependency_overrides[generation.get_speech_service] = lambda: fake
        return fake

    @pytest.fixture
    def transcription(self, mocker):
        fake = mocker.MagicMock()
        fake.transcribe = mocker.AsyncMock(return_value=[
            CaptionWord(text="Hello", start=0, end=420, confidence=0.98),
            CaptionWord(text="world", start=430, end=900, confidence=0.95),
        ])
        app.dependency_overrides[generation.get_transcription_service] = lambda: fake
        return fake

    @pytest.fixture
    def content(self, mocker):
        fake = mocker.MagicMock()
        fake.generate_image = mocker.AsyncMock(return_value=GeneratedImage(data="aW1n", mime_type="image/png"))
        fake.generate_images = mocker.AsyncMock(return_value=["aW1n", ""])
        fake.generate_script = mocker.AsyncMock(return_value={"scenes": [{"text": "Once"}]})
        app.dependency_overrides[generation.get_content_service] = lambda: fake
        return fake

    def test_generate_audio(self, client, speech):
        """Test base64 audio output."""
        response = client.post("/api/generate-audio", json={"text": "Hello"})

        assert response.status_code == 200
        assert response.json() == {
            "audio": base64.b64encode(b"mp3-bytes").decode("ascii"),
            "contentType": "audio/mpeg",
        }
        speech.synthesize.assert_awaited_once_with("Hello")

    def test_generate_audio_missing_text(self, client, speech):
        """Test that text is required."""
        response = client.post("/api/generate-audio", json={})
        assert response.status_code == 400

    def test_generate_audio_failure(self, client, speech):
        """Test upstream failure mapping."""
        speech.synthesize.side_effect = SpeechSynthesisError("ElevenLabs API error: 401")

        response = client.post("/api/generate-audio", json={"text": "Hello"})

        assert response.status_code == 500
        assert response.json() == {"error": "ElevenLabs API error: 401"}

    def test_generate_captions(self, client, transcription):
        """Test word-level caption output."""
        response = client.post("/api/generate-captions", json={"audioFileUrl": "https://cdn.test/a.mp3"})

        assert response.status_code == 200
        assert response.json()["captions"][1] == {
            "text": "world", "start": 430, "end": 900, "confidence": 0.95,
        }
        transcription.transcribe.assert_awaited_once_with("https://cdn.test/a.mp3")

    def test_generate_captions_failure(self, client, transcription):
        """Test transcription failure mapping."""
        transcription.transcribe.side_effect = TranscriptionError("No captions generated")

        response = client.post("/api/generate-captions", json={"audioFileUrl": "https://cdn.test/a.mp3"})

        assert response.status_code == 500
        assert response.json() == {"error": "No captions generated"}

    def test_generate_image(self, client, content):
        """Test single image output."""
        response = client.post("/api/generate-image", json={"prompt": "a cat"})

        assert response.status_code == 200
        assert response.json() == {"image": "aW1n", "contentType": "image/png"}

    def test_generate_images_keeps_placeholders(self, client, content):
        """Test that failed prompts come back as empty strings."""
        response = client.post("/api/generate-images", json={"prompts": ["a", "b"]})

        assert response.status_code == 200
        assert response.json()["images"] == ["aW1n", ""]

    def test_generate_script(self, client, content):
        """Test parsed JSON script output."""
        response = client.post("/api/generate-script", json={"prompt": "story"})

        assert response.status_code == 200
        assert response.json() == {"script": {"scenes": [{"text": "Once"}]}}

    def test_generate_script_failure(self, client, content):
        """Test unparseable script mapping."""
        content.generate_script.side_effect = ContentGenerationError("Failed to parse script JSON")

        response = client.post("/api/generate-script", json={"prompt": "story"})

        assert response.status_code == 500
        assert "Failed to parse" in response.json()["error"]

    def test_generate_image_unexpected_error_has_error_body(self, client, content):
        """Test that an unmapped exception still answers with a JSON error body."""
        content.generate_image.side_effect = RuntimeError("boom")
        unraised = TestClient(app, raise_server_exceptions=False)

        response = unraised.post("/api/generate-image", json={"prompt": "a cat"})

        assert response.status_code == 500
        assert response.json() == {"error": "boom"}

    def test_generate_image_upstream_html_is_error_body(self, client):
        """Test a real content service against a non-JSON 200 from Gemini."""
        service = ContentGenerationService(client=httpx.AsyncClient(
            base_url="https://gemini.test",
            transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>oops</html>")),
        ))
        service.settings = Settings(gemini_api_key="k")
        app.dependency_overrides[generation.get_content_service] = lambda: service

        response = client.post("/api/generate-image", json={"prompt": "a cat"})

        assert response.status_code == 500
        assert response.json() == {"error": "Invalid response from Gemini"}

    def test_generate_captions_upstream_html_is_error_body(self, client):
        """Test a real transcription service against a non-JSON 200 from AssemblyAI."""
        service = TranscriptionService(
            client=httpx.AsyncClient(
                base_url="https://assemblyai.test",
                transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>oops</html>")),
            ),
            poll_interval_seconds=0,
        )
        service.settings = Settings(assemblyai_api_key="k")
        app.dependency_overrides[generation.get_transcription_service] = lambda: service

        response = client.post("/api/generate-captions", json={"audioFileUrl": "https://cdn.test/a.mp3"})

        assert response.status_code == 500
        assert response.json() == {"error": "Invalid response from AssemblyAI"}


class TestWhopWebhook:
    """Tests for POST /api/whop-webhook."""

    @pytest.fixture
    def subscriptions(self, mocker):
        fake = mocker.MagicMock()
        fake.handle_event = mocker.AsyncMock(
            return_value=WebhookOutcome(action="membership.went_valid", user_id="user_1", applied=True)
        )
        app.dependency_overrides[webhooks.get_subscription_service] = lambda: fake
        return fake

    def test_ack(self, client, subscriptions):
        """Test the acknowledgement body."""
        payload = {"action": "membership.went_valid", "data": {"user_id": "user_1"}}

        response = client.post("/api/whop-webhook", json=payload)

        assert response.status_code == 200
        assert response.json() == {"success": True, "action": "membership.went_valid", "userId": "user_1"}
        subscriptions.handle_event.assert_awaited_once_with(payload)

    @pytest.mark.parametrize(
        "error,status_code,message",
        [
            (SubscriptionConfigError("Missing Supabase credentials"), 500, "Server configuration error"),
            (MissingUserIdError("Missing user_id"), 400, "Missing user_id"),
            (SubscriptionStoreError("Database error while adding credits"), 500, "Database error"),
        ],
    )
    def test_known_errors(self, client, subscriptions, error, status_code, message):
        """Test error mapping for subscription failures."""
        subscriptions.handle_event.side_effect = error

        response = client.post("/api/whop-webhook", json={"action": "x"})

        assert response.status_code == status_code
        assert response.json() == {"error": message}

    def test_unexpected_error(self, client, subscriptions):
        """Test the catch-all error body."""
        subscriptions.handle_event.side_effect = KeyError("data")

        response = client.post("/api/whop-webhook", json={"action": "x"})

        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"
        assert "message" in response.json()
