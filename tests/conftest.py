"""
Pytest configuration and fixtures.
"""

import base64
import os
import sys

import pytest

# Add app directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# 1x1 transparent PNG
TINY_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


@pytest.fixture(scope="session")
def png_bytes():
    """Raw bytes of a tiny valid PNG."""
    return TINY_PNG


@pytest.fixture(scope="session")
def png_data_url(png_bytes):
    """The tiny PNG as a base64 data URL."""
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")


@pytest.fixture(scope="session")
def mp3_data_url():
    """A small inline audio payload (content is irrelevant to resolution)."""
    return "data:audio/mpeg;base64," + base64.b64encode(b"ID3fake-audio").decode("ascii")


@pytest.fixture
def mock_settings():
    """Settings with every external credential filled in."""
    from app.config import Settings

    return Settings(
        elevenlabs_api_key="test-elevenlabs-key",
        assemblyai_api_key="test-assemblyai-key",
        gemini_api_key="test-gemini-key",
        supabase_url="https://test.supabase.co",
        supabase_service_role_key="test-service-role-key",
        workspace_directory="/tmp/storyreel-test",
    )


@pytest.fixture
def workspace_root(tmp_path):
    """Empty directory used as the workspace root."""
    root = tmp_path / "workspaces"
    root.mkdir()
    return root
