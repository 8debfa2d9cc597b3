# CUI // SP-CTI
"""OpenAI chat adapter.

Works against api.openai.com or any server implementing the Chat
Completions API (vLLM, Ollama, ...) through a configurable base_url.
Per-call options win over the client's default options.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from modelport.llm.chat_completions import (
    ChatCompletionsClient,
    ChatCompletionsRequest,
    messages_to_openai,
)
from modelport.llm.errors import InvalidArgumentError
from modelport.llm.options import MergeableOptions, as_list, merge_options, option
from modelport.llm.provider import Prompt

logger = logging.getLogger("modelport.llm.openai")

try:
    import openai as openai_sdk
    HAS_OPENAI = True
except ImportError:
    openai_sdk = None
    HAS_OPENAI = False


DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_TEMPERATURE = 0.7


@dataclass
class OpenAiChatOptions(MergeableOptions):
    model: Optional[str] = option()
    temperature: Optional[float] = option(normalize=float)
    top_p: Optional[float] = option(normalize=float)
    max_tokens: Optional[int] = option(normalize=int)
    stop: Optional[List[str]] = option(normalize=as_list, alias="stop_sequences")
    logit_bias: Optional[Dict[str, int]] = option(normalize=dict)
    frequency_penalty: Optional[float] = option(normalize=float)
    presence_penalty: Optional[float] = option(normalize=float)
    n: Optional[int] = option(normalize=int)
    user: Optional[str] = option()
    seed: Optional[int] = option(normalize=int)
    response_format: Optional[Dict[str, Any]] = option()

    unsupported_fields = ("top_k",)
    provider_name = "openai"


def default_chat_options() -> OpenAiChatOptions:
    return OpenAiChatOptions(model=DEFAULT_MODEL, temperature=DEFAULT_TEMPERATURE)


def build_openai_client(api_key: str = "", base_url: str = DEFAULT_BASE_URL):
    """Create an ``openai.OpenAI`` client; key-less servers get a placeholder."""
    if not HAS_OPENAI:
        raise ImportError("openai SDK required. Install: pip install openai")
    return openai_sdk.OpenAI(
        api_key=api_key or os.environ.get("OPENAI_API_KEY", "") or "not-needed",
        base_url=base_url or DEFAULT_BASE_URL,
    )


class OpenAiChatClient(ChatCompletionsClient):
    """OpenAI Chat Completions adapter (single-shot and streaming)."""

    def __init__(self, client=None, default_options: Optional[OpenAiChatOptions] = None,
                 api_key: str = "", base_url: str = DEFAULT_BASE_URL,
                 skip_first_stream_chunk: bool = False):
        self._client = client
        self._api_key = api_key
        self._base_url = base_url
        self._default_options = (
            default_options if default_options is not None else default_chat_options()
        )
        self.skip_first_stream_chunk = skip_first_stream_chunk

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def default_options(self) -> OpenAiChatOptions:
        return self._default_options

    def _get_client(self):
        """Lazy-init OpenAI client with custom base_url."""
        if self._client is None:
            self._client = build_openai_client(self._api_key, self._base_url)
        return self._client

    def to_chat_completions_request(self, prompt: Prompt,
                                    native: Optional[ChatCompletionsRequest] = None
                                    ) -> ChatCompletionsRequest:
        messages = messages_to_openai(prompt.messages, self.provider_name)
        runtime = prompt.options
        if runtime is not None and not isinstance(runtime, MergeableOptions):
            raise InvalidArgumentError(
                "Prompt options are not of type ChatOptions: " + type(runtime).__name__,
                provider=self.provider_name,
            )
        if runtime is not None and not isinstance(runtime, OpenAiChatOptions):
            runtime = runtime.copy_to(OpenAiChatOptions)
        request = merge_options(
            ChatCompletionsRequest, native, runtime, self._default_options
        )
        request.messages = messages
        return request
