"""
OpenAI chat-completions analysis provider.

Image captures are sent as base64 data URLs next to the instructions;
series captures are sent as the text digest. The first JSON object in the
reply is returned.
"""

import base64
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from zonesight.analysis.series_formatter import format_series_for_ai
from zonesight.contracts.ai_contract import AnalysisProvider
from zonesight.shared.config.defaults import OpenAIConfig
from zonesight.shared.models.analysis import CaptureResult
from zonesight.shared.utils.error_policy import AnalysisFailure


SYSTEM_PROMPT = (
    "You are a professional Forex/Gold chart analyst. Follow the given procedure exactly "
    "and reply with a single JSON object and nothing else."
)

_FENCE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Parse the first {...} block of a model reply.

    Raises:
        AnalysisFailure: No object found or it is not valid JSON
    """
    cleaned = _FENCE.sub("", text or "").strip()
    match = _OBJECT.search(cleaned)
    if not match:
        raise AnalysisFailure(f"AI reply contains no JSON object: {cleaned[:120]!r}")
    try:
        data = json.loads(match.group())
    except json.JSONDecodeError as e:
        raise AnalysisFailure(f"AI reply is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise AnalysisFailure("AI reply JSON is not an object")
    return data


def image_data_url(path: str) -> str:
    suffix = Path(path).suffix.lower().lstrip(".") or "png"
    mime = "jpeg" if suffix in ("jpg", "jpeg") else suffix
    encoded = base64.b64encode(Path(path).read_bytes()).decode("utf-8")
    return f"data:image/{mime};base64,{encoded}"


class OpenAIVisionProvider(AnalysisProvider):
    """AnalysisProvider backed by an OpenAI-compatible chat-completions endpoint."""

    def __init__(self, config: Optional[OpenAIConfig] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or OpenAIConfig()
        self._client = client

    def _headers(self) -> Dict[str, str]:
        if not self.config.api_key:
            raise AnalysisFailure("OPENAI_API_KEY is not configured")
        return {"Authorization": f"Bearer {self.config.api_key}", "Content-Type": "application/json"}

    def build_messages(self, capture: CaptureResult, instructions: str) -> List[Dict[str, Any]]:
        if capture.mode == "image":
            try:
                url = image_data_url(capture.image_path)
            except OSError as e:
                raise AnalysisFailure(f"Cannot read chart image {capture.image_path}: {e}",
                                      timeframe=capture.timeframe) from e
            content: Any = [
                {"type": "text", "text": instructions},
                {"type": "image_url", "image_url": {"url": url, "detail": "high"}},
            ]
        else:
            if "CHART DATA:" in instructions:
                content = instructions
            else:
                digest = format_series_for_ai(capture.series, capture.instrument, capture.timeframe)
                content = f"{instructions}\n\nCHART DATA:\n{digest}"
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": content},
        ]

    async def analyze(self, capture: CaptureResult, instructions: str) -> Dict[str, Any]:
        payload = {
            "model": self.config.model,
            "messages": self.build_messages(capture, instructions),
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
        }
        url = f"{self.config.base_url.rstrip('/')}/chat/completions"
        headers = self._headers()

        logger.debug(f"AI request {capture.instrument} {capture.timeframe} ({capture.mode}) -> {self.config.model}")
        try:
            if self._client is not None:
                response = await self._client.post(url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=None) as client:
                    response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            raise AnalysisFailure(f"AI request failed: {e}", timeframe=capture.timeframe) from e
        except ValueError as e:
            raise AnalysisFailure(f"AI response is not JSON: {e}", timeframe=capture.timeframe) from e

        try:
            text = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AnalysisFailure(f"Unexpected AI response shape: {e}", timeframe=capture.timeframe) from e

        return extract_json_object(text)
