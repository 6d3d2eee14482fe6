from __future__ import annotations

import base64
import logging
from typing import Callable, Dict, Optional, Sequence

import httpx

from bridge.errors import UpstreamError

LOGGER = logging.getLogger("bridge.model")


def _text_field(data: Dict[str, object]) -> Optional[str]:
    text = data.get("text")
    return text if isinstance(text, str) else None


def _candidate_parts_text(data: Dict[str, object]) -> Optional[str]:
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    first = candidates[0]
    content = first.get("content") if isinstance(first, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return None
    texts = [
        part["text"]
        for part in parts
        if isinstance(part, dict) and isinstance(part.get("text"), str) and not part.get("thought")
    ]
    return "".join(texts) if texts else None


def _choices_message_text(data: Dict[str, object]) -> Optional[str]:
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else None


TextExtractor = Callable[[Dict[str, object]], Optional[str]]

TEXT_EXTRACTORS: Sequence[TextExtractor] = (
    _text_field,
    _candidate_parts_text,
    _choices_message_text,
)


def extract_model_text(data: object, extractors: Sequence[TextExtractor] = TEXT_EXTRACTORS) -> str:
    if isinstance(data, dict):
        for extractor in extractors:
            text = extractor(data)
            if text and text.strip():
                return text
    raise UpstreamError("Model returned an empty response")


class GeminiClient:
    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    @staticmethod
    def build_request_body(
        system_instruction: str,
        user_prompt: str,
        image_bytes: bytes,
        mime_type: str,
    ) -> Dict[str, object]:
        return {
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": user_prompt},
                        {
                            "inlineData": {
                                "mimeType": mime_type,
                                "data": base64.b64encode(image_bytes).decode("ascii"),
                            }
                        },
                    ],
                }
            ],
            "generationConfig": {"responseMimeType": "application/json"},
        }

    async def ask(
        self,
        model: str,
        system_instruction: str,
        user_prompt: str,
        image_bytes: bytes,
        mime_type: str,
    ) -> str:
        request_body = self.build_request_body(system_instruction, user_prompt, image_bytes, mime_type)
        url = f"{self.base_url}/models/{model}:generateContent"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, json=request_body, headers=self._headers())
        except httpx.HTTPError as exc:
            LOGGER.warning("model_request_failed model=%s error=%s", model, exc.__class__.__name__)
            raise UpstreamError("Model request failed") from exc

        if response.status_code >= 400:
            LOGGER.warning("model_request_rejected model=%s status=%s", model, response.status_code)
            raise UpstreamError(f"Model request failed with status {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError("Model response was not JSON") from exc
        return extract_model_text(data)
