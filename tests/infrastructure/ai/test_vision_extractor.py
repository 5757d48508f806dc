"""Tests for the vision-model extractor."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from nameplate.domain.errors import (ExtractionError, ExtractionTimeoutError,
                                     RateLimitError)
from nameplate.domain.models import ExtractionMethod, LlmRawData
from nameplate.infrastructure.ai.rate_limiter import RequestThrottle
from nameplate.infrastructure.ai.vision_extractor import (EXTRACTION_PROMPT,
                                                          NameplateExtraction,
                                                          VisionExtractor)

IMAGE_URL = "https://storage.example.test/nameplate.jpg"


def _completion(content: dict | str | None) -> httpx.Response:
    if isinstance(content, dict):
        content = json.dumps(content)
    return httpx.Response(
        200, json={"choices": [{"message": {"role": "assistant", "content": content}}]}
    )


class Recorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def sleep(self, seconds: float) -> None:
        self.delays.append(seconds)


def _extractor(handler, recorder: Recorder | None = None, **kwargs) -> VisionExtractor:
    recorder = recorder or Recorder()
    throttle = RequestThrottle(clock=lambda: 0.0, sleep=recorder.sleep)
    return VisionExtractor(
        throttle,
        api_key="test-key",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=recorder.sleep,
        **kwargs,
    )


class TestNameplateExtraction:
    def test_missing_confidence_means_no_scores(self):
        parsed = NameplateExtraction.model_validate_json('{"brand": "BOSCH"}')
        assert parsed.confidence_scores() == {}

    def test_partial_confidence_keeps_only_given_fields(self):
        parsed = NameplateExtraction.model_validate(
            {"brand": "LG", "confidence": {"brand": 0.9}})
        assert parsed.confidence_scores() == {"brand": 0.9}

    def test_confidence_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            NameplateExtraction.model_validate({"confidence": {"brand": 1.5}})


class TestVisionExtractor:
    def test_successful_extraction(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return _completion({
                "brand": "WHIRLPOOL",
                "product_family": "LAVE-LINGE",
                "model_number": "WTW5000DW",
                "serial_number": "CA1234567890",
                "confidence": {
                    "brand": 0.95,
                    "product_family": 0.8,
                    "model_number": 0.9,
                    "serial_number": 0.85,
                },
            })

        extractor = _extractor(handler)
        result = asyncio.run(extractor.extract(IMAGE_URL))

        assert result.method == ExtractionMethod.LLM
        assert result.brand == "WHIRLPOOL"
        assert result.serial_number == "CA1234567890"
        assert result.confidence_scores["model_number"] == 0.9
        assert isinstance(result.raw_data, LlmRawData)
        assert result.raw_data.llm_response["brand"] == "WHIRLPOOL"

        body = json.loads(requests[0].content)
        assert requests[0].url.path == "/v1/chat/completions"
        assert requests[0].headers["Authorization"] == "Bearer test-key"
        assert body["model"] == "gpt-4o-mini"
        assert body["response_format"]["type"] == "json_schema"
        content = body["messages"][0]["content"]
        assert content[0]["text"] == EXTRACTION_PROMPT
        assert content[1]["image_url"]["url"] == IMAGE_URL

    def test_model_override(self):
        models: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            models.append(json.loads(request.content)["model"])
            return _completion({"brand": "LG"})

        extractor = _extractor(handler)
        asyncio.run(extractor.extract(IMAGE_URL, model="gpt-4o"))
        assert models == ["gpt-4o"]

    def test_missing_confidence_object_yields_empty_scores(self):
        extractor = _extractor(lambda request: _completion({"brand": "SAMSUNG"}))
        result = asyncio.run(extractor.extract(IMAGE_URL))
        assert result.brand == "SAMSUNG"
        assert result.confidence_scores == {}

    def test_rate_limit_retries_are_bounded(self):
        """Three retries with 2s, 4s, 8s backoff, then the error surfaces."""
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(429, text="Rate limit exceeded")

        recorder = Recorder()
        extractor = _extractor(handler, recorder)

        with pytest.raises(RateLimitError):
            asyncio.run(extractor.extract(IMAGE_URL))

        assert recorder.delays == [2.0, 4.0, 8.0]
        assert len(calls) == 4
        assert extractor.throttle.requests_in_window == 4

    def test_rate_limit_then_success(self):
        responses = [
            httpx.Response(429, text="too many requests"),
            _completion({"brand": "BOSCH", "confidence": {"brand": 0.7}}),
        ]
        recorder = Recorder()
        extractor = _extractor(lambda request: responses.pop(0), recorder)

        result = asyncio.run(extractor.extract(IMAGE_URL))

        assert result.brand == "BOSCH"
        assert recorder.delays == [2.0]

    def test_retry_count_reduces_remaining_retries(self):
        recorder = Recorder()
        extractor = _extractor(
            lambda request: httpx.Response(429, text="rate_limit"), recorder)

        with pytest.raises(RateLimitError):
            asyncio.run(extractor.extract(IMAGE_URL, retry_count=2))

        assert recorder.delays == [8.0]

    def test_server_error_is_not_retried(self):
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500, text="upstream failure")

        recorder = Recorder()
        extractor = _extractor(handler, recorder)

        with pytest.raises(ExtractionError, match="LLM extraction failed"):
            asyncio.run(extractor.extract(IMAGE_URL))
        assert len(calls) == 1
        assert recorder.delays == []

    def test_timeout_raises_timeout_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        extractor = _extractor(handler)
        with pytest.raises(ExtractionTimeoutError):
            asyncio.run(extractor.extract(IMAGE_URL))

    def test_empty_response_is_an_error(self):
        extractor = _extractor(lambda request: _completion(None))
        with pytest.raises(ExtractionError, match="empty response"):
            asyncio.run(extractor.extract(IMAGE_URL))

    def test_schema_mismatch_is_an_error(self):
        extractor = _extractor(
            lambda request: _completion({"confidence": {"brand": 7}}))
        with pytest.raises(ExtractionError, match="did not match schema"):
            asyncio.run(extractor.extract(IMAGE_URL))

    def test_schema_error_mentioning_429_is_not_retried(self):
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return _completion({"brand": 4290})

        recorder = Recorder()
        extractor = _extractor(handler, recorder)

        with pytest.raises(ExtractionError, match="did not match schema"):
            asyncio.run(extractor.extract(IMAGE_URL))
        assert len(calls) == 1
        assert recorder.delays == []

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        extractor = VisionExtractor(RequestThrottle())
        with pytest.raises(ExtractionError, match="API key"):
            asyncio.run(extractor.extract(IMAGE_URL))

    def test_backoff_delay_doubles(self):
        extractor = VisionExtractor(RequestThrottle(), api_key="k")
        assert [extractor.backoff_delay(n) for n in range(3)] == [2.0, 4.0, 8.0]
