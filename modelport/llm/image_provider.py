# CUI // SP-CTI
"""Image generation adapters: Stability AI (REST) and OpenAI Images.

Both merge per-call options over the client's default options. Weighted
prompts are only meaningful to Stability AI; OpenAI receives the message
texts joined with a space.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from modelport.llm.errors import InvalidArgumentError
from modelport.llm.openai_provider import DEFAULT_BASE_URL, build_openai_client
from modelport.llm.options import MergeableOptions, merge_options, option
from modelport.llm.provider import (
    ImageClient,
    ImageGeneration,
    ImagePrompt,
    ImageResponse,
)

logger = logging.getLogger("modelport.llm.image")

try:
    import requests
    HAS_REQUESTS = True
except ImportError:
    requests = None  # type: ignore[assignment]
    HAS_REQUESTS = False


STABILITY_BASE_URL = "https://api.stability.ai/v1"
STABILITY_DEFAULT_MODEL = "stable-diffusion-v1-6"
OPENAI_DEFAULT_IMAGE_MODEL = "dall-e-3"


def _runtime_options(options: Any, options_cls, provider: str):
    if options is None or isinstance(options, options_cls):
        return options
    if isinstance(options, MergeableOptions):
        return options.copy_to(options_cls)
    raise InvalidArgumentError(
        "Image options are not of type {}: {}".format(
            options_cls.__name__, type(options).__name__
        ),
        provider=provider,
    )


# ---------------------------------------------------------------------------
# Stability AI
# ---------------------------------------------------------------------------
@dataclass
class StabilityAiImageOptions(MergeableOptions):
    """``model`` is the engine id; ``n`` maps to ``samples``."""
    model: Optional[str] = option()
    n: Optional[int] = option(normalize=int)
    width: Optional[int] = option(normalize=int)
    height: Optional[int] = option(normalize=int)
    cfg_scale: Optional[float] = option(normalize=float)
    clip_guidance_preset: Optional[str] = option()
    sampler: Optional[str] = option()
    seed: Optional[int] = option(normalize=int)
    steps: Optional[int] = option(normalize=int)
    style_preset: Optional[str] = option()
    response_format: Optional[str] = option()


class StabilityAiImageClient(ImageClient):
    """Stability AI text-to-image over its REST API."""

    def __init__(self, api_key: str = "", base_url: str = STABILITY_BASE_URL,
                 default_options: Optional[StabilityAiImageOptions] = None,
                 http=None, timeout: int = 120):
        self._api_key = api_key or os.environ.get("STABILITYAI_API_KEY", "")
        self._base_url = (base_url or STABILITY_BASE_URL).rstrip("/")
        self._default_options = (
            default_options if default_options is not None
            else StabilityAiImageOptions(model=STABILITY_DEFAULT_MODEL)
        )
        self._http = http
        self._timeout = timeout

    @property
    def provider_name(self) -> str:
        return "stabilityai"

    @property
    def default_options(self) -> StabilityAiImageOptions:
        return self._default_options

    def _get_http(self):
        if self._http is None:
            if not HAS_REQUESTS:
                raise ImportError("requests library required. Install: pip install requests")
            self._http = requests
        return self._http

    def create_request(self, prompt: ImagePrompt) -> Dict[str, Any]:
        """Build the JSON body; ``model`` is kept for the URL path."""
        merged = merge_options(
            StabilityAiImageOptions,
            _runtime_options(prompt.options, StabilityAiImageOptions, self.provider_name),
            self._default_options,
        )
        text_prompts = []
        for message in prompt.messages:
            entry: Dict[str, Any] = {"text": message.text}
            if message.weight is not None:
                entry["weight"] = message.weight
            text_prompts.append(entry)

        body: Dict[str, Any] = {"text_prompts": text_prompts}
        wire_names = {
            "n": "samples",
            "width": "width",
            "height": "height",
            "cfg_scale": "cfg_scale",
            "clip_guidance_preset": "clip_guidance_preset",
            "sampler": "sampler",
            "seed": "seed",
            "steps": "steps",
            "style_preset": "style_preset",
        }
        values = merged.to_dict()
        for name, wire in wire_names.items():
            if name in values:
                body[wire] = values[name]
        body["model"] = merged.model or STABILITY_DEFAULT_MODEL
        body["response_format"] = merged.response_format or "application/json"
        return body

    def call(self, prompt: ImagePrompt) -> ImageResponse:
        body = self.create_request(prompt)
        engine = body.pop("model")
        accept = body.pop("response_format")
        url = "{}/generation/{}/text-to-image".format(self._base_url, engine)
        if not self._api_key:
            raise InvalidArgumentError(
                "StabilityAI API key must be set. Set STABILITYAI_API_KEY "
                "or pass api_key= to constructor.",
                provider=self.provider_name,
            )
        headers = {
            "Authorization": "Bearer " + self._api_key,
            "Content-Type": "application/json",
            "Accept": accept,
        }
        logger.debug("Stability AI request to %s: %s", url, body)
        http = self._get_http()
        try:
            resp_http = http.post(url, json=body, headers=headers, timeout=self._timeout)
            resp_http.raise_for_status()
        except Exception as exc:
            logger.error("Stability AI request error: %s", exc)
            raise

        artifacts = resp_http.json().get("artifacts", [])
        generations = [
            ImageGeneration(
                b64_json=a.get("base64"),
                metadata={"seed": a.get("seed"), "finish_reason": a.get("finishReason")},
            )
            for a in artifacts
        ]
        return ImageResponse(generations=generations, metadata={"model": engine})


# ---------------------------------------------------------------------------
# OpenAI Images
# ---------------------------------------------------------------------------
@dataclass
class OpenAiImageOptions(MergeableOptions):
    model: Optional[str] = option()
    n: Optional[int] = option(normalize=int)
    quality: Optional[str] = option()
    response_format: Optional[str] = option()
    size: Optional[str] = option()
    style: Optional[str] = option()
    user: Optional[str] = option()


class OpenAiImageClient(ImageClient):
    """OpenAI ``images.generate`` adapter."""

    def __init__(self, client=None, default_options: Optional[OpenAiImageOptions] = None,
                 api_key: str = "", base_url: str = DEFAULT_BASE_URL):
        self._client = client
        self._api_key = api_key
        self._base_url = base_url
        self._default_options = (
            default_options if default_options is not None
            else OpenAiImageOptions(model=OPENAI_DEFAULT_IMAGE_MODEL)
        )

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def default_options(self) -> OpenAiImageOptions:
        return self._default_options

    def _get_client(self):
        if self._client is None:
            self._client = build_openai_client(self._api_key, self._base_url)
        return self._client

    def create_request(self, prompt: ImagePrompt) -> Dict[str, Any]:
        merged = merge_options(
            OpenAiImageOptions,
            _runtime_options(prompt.options, OpenAiImageOptions, self.provider_name),
            self._default_options,
        )
        kwargs = merged.to_dict()
        kwargs["prompt"] = " ".join(m.text for m in prompt.messages)
        return kwargs

    def call(self, prompt: ImagePrompt) -> ImageResponse:
        kwargs = self.create_request(prompt)
        logger.debug("OpenAI image request: %s", kwargs)
        client = self._get_client()
        try:
            response = client.images.generate(**kwargs)
        except Exception as exc:
            logger.error("OpenAI image generation error: %s", exc)
            raise

        generations = [
            ImageGeneration(
                b64_json=getattr(item, "b64_json", None),
                url=getattr(item, "url", None),
                metadata={"revised_prompt": getattr(item, "revised_prompt", None)},
            )
            for item in response.data
        ]
        return ImageResponse(
            generations=generations,
            metadata={"created": getattr(response, "created", None)},
        )
