import base64
import io
import json
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from bridge.config import Settings
from bridge.main import create_app

TEST_TOKEN = "test-bridge-token-0123456789"


class FakeModelClient:
    def __init__(self) -> None:
        self.responses: List[object] = []
        self.calls: List[dict] = []

    def queue(self, response: object) -> None:
        self.responses.append(response)

    async def ask(
        self,
        model: str,
        system_instruction: str,
        user_prompt: str,
        image_bytes: bytes,
        mime_type: str,
    ) -> str:
        self.calls.append(
            {
                "model": model,
                "system_instruction": system_instruction,
                "user_prompt": user_prompt,
                "image_bytes": image_bytes,
                "mime_type": mime_type,
            }
        )
        response = self.responses.pop(0) if self.responses else "{}"
        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict):
            return json.dumps(response)
        return str(response)


def make_image_base64(
    size: tuple[int, int] = (32, 24),
    color: tuple[int, int, int] = (200, 120, 90),
    image_format: str = "PNG",
    mode: str = "RGB",
    exif: Optional[Image.Exif] = None,
) -> str:
    image = Image.new(mode, size, color if mode == "RGB" else color + (255,))
    buffer = io.BytesIO()
    if exif is not None:
        image.save(buffer, format=image_format, exif=exif)
    else:
        image.save(buffer, format=image_format)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        gemini_api_key="test-gemini-key",
        bridge_api_token=TEST_TOKEN,
        tmp_scan_dir=str(tmp_path / "scans"),
        min_response_delay_ms=0,
        cleanup_enabled=False,
        routine_cdn_base_url="https://cdn.example.com/routines",
    )


@pytest.fixture()
def model_client() -> FakeModelClient:
    return FakeModelClient()


@pytest.fixture()
def client(settings: Settings, model_client: FakeModelClient) -> TestClient:
    return TestClient(create_app(settings, model_client=model_client))


@pytest.fixture()
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {TEST_TOKEN}"}


@pytest.fixture()
def image_base64() -> str:
    return make_image_base64()


@pytest.fixture()
def image_factory():
    return make_image_base64
