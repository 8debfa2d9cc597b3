# CUI // SP-CTI
"""Tests for the image generation adapters (modelport/llm/image_provider.py)."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from modelport.llm.errors import InvalidArgumentError
from modelport.llm.image_provider import (
    OpenAiImageClient,
    OpenAiImageOptions,
    StabilityAiImageClient,
    StabilityAiImageOptions,
)
from modelport.llm.provider import ImageMessage, ImagePrompt


@pytest.fixture
def http():
    session = MagicMock()
    session.post.return_value.json.return_value = {
        "artifacts": [{"base64": "iVBORw0KGgo=", "seed": 123, "finishReason": "SUCCESS"}],
    }
    return session


# ---------------------------------------------------------------------------
# Stability AI
# ---------------------------------------------------------------------------

class TestStabilityAi:

    def test_request_body(self, http):
        client = StabilityAiImageClient(api_key="sk", http=http)
        prompt = ImagePrompt(
            [ImageMessage("a golden doodle", 0.5), ImageMessage("blurry", -1.0)],
            options=StabilityAiImageOptions(n=1, width=1024, height=1024, cfg_scale=7,
                                            seed=123, steps=30, style_preset="photographic"),
        )
        client.call(prompt)
        url = http.post.call_args.args[0]
        body = http.post.call_args.kwargs["json"]
        assert url == "https://api.stability.ai/v1/generation/stable-diffusion-v1-6/text-to-image"
        assert body["text_prompts"] == [
            {"text": "a golden doodle", "weight": 0.5},
            {"text": "blurry", "weight": -1.0},
        ]
        assert body["samples"] == 1
        assert body["cfg_scale"] == 7.0
        assert body["style_preset"] == "photographic"
        assert "model" not in body

    def test_headers(self, http):
        StabilityAiImageClient(api_key="sk", http=http).call(ImagePrompt("x"))
        headers = http.post.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer sk"
        assert headers["Accept"] == "application/json"

    def test_artifacts_to_generations(self, http):
        response = StabilityAiImageClient(api_key="sk", http=http).call(ImagePrompt("x"))
        assert response.result.b64_json == "iVBORw0KGgo="
        assert response.result.metadata == {"seed": 123, "finish_reason": "SUCCESS"}

    def test_request_overrides_default_engine(self, http):
        client = StabilityAiImageClient(
            api_key="sk", http=http,
            default_options=StabilityAiImageOptions(model="stable-diffusion-v1-6", steps=50),
        )
        client.call(ImagePrompt("x", options=StabilityAiImageOptions(model="sdxl-1.0")))
        assert "/generation/sdxl-1.0/" in http.post.call_args.args[0]
        assert http.post.call_args.kwargs["json"]["steps"] == 50

    def test_missing_api_key(self, http, monkeypatch):
        monkeypatch.delenv("STABILITYAI_API_KEY", raising=False)
        with pytest.raises(InvalidArgumentError, match="API key"):
            StabilityAiImageClient(http=http).call(ImagePrompt("x"))
        http.post.assert_not_called()

    def test_http_error_propagates(self, http):
        http.post.return_value.raise_for_status.side_effect = RuntimeError("401")
        with pytest.raises(RuntimeError, match="401"):
            StabilityAiImageClient(api_key="sk", http=http).call(ImagePrompt("x"))


# ---------------------------------------------------------------------------
# OpenAI Images
# ---------------------------------------------------------------------------

class TestOpenAiImage:

    @pytest.fixture
    def images_sdk(self):
        client = MagicMock()
        client.images.generate.return_value = SimpleNamespace(
            created=1700000000,
            data=[SimpleNamespace(b64_json=None, url="https://img/1.png", revised_prompt="a cat")],
        )
        return client

    def test_request_over_defaults(self, images_sdk):
        client = OpenAiImageClient(
            client=images_sdk,
            default_options=OpenAiImageOptions(model="dall-e-3", size="1024x1024", n=1),
        )
        client.call(ImagePrompt("a cat", options=OpenAiImageOptions(size="512x512")))
        kwargs = images_sdk.images.generate.call_args.kwargs
        assert kwargs == {"model": "dall-e-3", "size": "512x512", "n": 1, "prompt": "a cat"}

    def test_generations(self, images_sdk):
        response = OpenAiImageClient(client=images_sdk).call(ImagePrompt("a cat"))
        assert response.result.url == "https://img/1.png"
        assert response.result.metadata["revised_prompt"] == "a cat"

    def test_wrong_options_type(self, images_sdk):
        with pytest.raises(InvalidArgumentError):
            OpenAiImageClient(client=images_sdk).call(ImagePrompt("x", options=["hd"]))
