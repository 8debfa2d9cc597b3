# CUI // SP-CTI
"""OpenAI Chat Completions wire format, shared by the OpenAI and Azure
OpenAI adapters.

Request side: ``ChatCompletionsRequest`` is the vendor-native request
record; ``messages_to_openai`` maps unified messages onto the vendor's
message kinds. Response side: ``response_from_completion`` and
``responses_from_stream`` build unified responses from SDK objects (or the
equivalent dicts).
"""

import logging
from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional

from modelport.llm.errors import UnsupportedMessageRoleError
from modelport.llm.options import MergeableOptions, as_list, not_merged, option
from modelport.llm.provider import (
    ChatClient,
    ChatResponse,
    ChoiceMetadata,
    Generation,
    Message,
    MessageRole,
    Prompt,
    PromptFilterMetadata,
    ResponseMetadata,
    StreamingChatClient,
    Usage,
)

logger = logging.getLogger("modelport.llm.chat_completions")

_OPENAI_ROLES = {role.value for role in MessageRole}


@dataclass
class ChatCompletionsRequest(MergeableOptions):
    """Vendor-native Chat Completions request.

    ``messages`` and ``stream`` are owned by the adapter and never merged.
    """
    messages: List[Dict[str, Any]] = not_merged(default_factory=list)
    model: Optional[str] = option()
    max_tokens: Optional[int] = option(normalize=int)
    temperature: Optional[float] = option(normalize=float)
    top_p: Optional[float] = option(normalize=float)
    logit_bias: Optional[Dict[str, int]] = option(normalize=dict)
    stop: Optional[List[str]] = option(normalize=as_list, alias="stop_sequences")
    frequency_penalty: Optional[float] = option(normalize=float)
    presence_penalty: Optional[float] = option(normalize=float)
    n: Optional[int] = option(normalize=int)
    user: Optional[str] = option()
    seed: Optional[int] = option(normalize=int)
    response_format: Optional[Dict[str, Any]] = option()
    stream: bool = not_merged(default=False)

    def to_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``client.chat.completions.create``."""
        kwargs = self.to_dict()
        kwargs["messages"] = list(self.messages)
        kwargs.pop("stream", None)
        if self.stream:
            kwargs["stream"] = True
        return kwargs


# ---------------------------------------------------------------------------
# Request translation
# ---------------------------------------------------------------------------
def message_to_openai(message: Message, provider: str = "") -> Dict[str, Any]:
    """Map one unified message to a Chat Completions message.

    Raises:
        UnsupportedMessageRoleError: role is not system/user/assistant.
    """
    role = message.role.value if isinstance(message.role, MessageRole) else message.role
    if role not in _OPENAI_ROLES:
        raise UnsupportedMessageRoleError(message.role, provider=provider)
    return {"role": role, "content": message.content}


def messages_to_openai(messages: Iterable[Message], provider: str = "") -> List[Dict[str, Any]]:
    return [message_to_openai(m, provider) for m in messages]


# ---------------------------------------------------------------------------
# Response translation
# ---------------------------------------------------------------------------
def _get(obj: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from an SDK model or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _finish_reason(choice: Any) -> Optional[str]:
    reason = _get(choice, "finish_reason")
    if reason is None:
        return None
    return getattr(reason, "value", None) or str(reason)


def choice_metadata(choice: Any) -> ChoiceMetadata:
    return ChoiceMetadata(
        finish_reason=_finish_reason(choice),
        content_filter=_get(choice, "content_filter_results"),
    )


def prompt_metadata(completion: Any) -> List[PromptFilterMetadata]:
    """Prompt-level content-filter results; empty list when absent."""
    results = _get(completion, "prompt_filter_results") or []
    return [
        PromptFilterMetadata(
            prompt_index=_get(r, "prompt_index", 0),
            content_filter=_get(r, "content_filter_results"),
        )
        for r in results
    ]


def usage_from(completion: Any) -> Optional[Usage]:
    usage = _get(completion, "usage")
    if usage is None:
        return None
    prompt_tokens = _get(usage, "prompt_tokens", 0) or 0
    generation_tokens = _get(usage, "completion_tokens", 0) or 0
    return Usage(
        prompt_tokens=prompt_tokens,
        generation_tokens=generation_tokens,
        total_tokens=_get(usage, "total_tokens") or prompt_tokens + generation_tokens,
    )


def response_from_completion(completion: Any) -> ChatResponse:
    """Map every returned choice to one Generation."""
    generations = []
    for choice in _get(completion, "choices") or []:
        message = _get(choice, "message")
        generations.append(Generation(
            text=_get(message, "content"),
            metadata=choice_metadata(choice),
        ))
    metadata = ResponseMetadata(
        id=_get(completion, "id", "") or "",
        model=_get(completion, "model", "") or "",
        usage=usage_from(completion),
        prompt_metadata=prompt_metadata(completion),
    )
    return ChatResponse(generations=generations, metadata=metadata)


def responses_from_stream(chunks: Iterable[Any], skip_first: bool = False) -> Iterator[ChatResponse]:
    """Lazily turn streamed chunks into partial responses.

    With ``skip_first`` the first chunk is discarded unconditionally (Azure
    OpenAI emits an artifact chunk first). Each choice with a non-empty
    delta, or carrying the finish reason, yields one partial response.
    """
    iterator = iter(chunks)
    if skip_first:
        next(iterator, None)
    for chunk in iterator:
        for choice in _get(chunk, "choices") or []:
            content = _get(_get(choice, "delta"), "content")
            metadata = choice_metadata(choice)
            if not content and metadata.finish_reason is None:
                continue
            yield ChatResponse(
                generations=[Generation(text=content, metadata=metadata)],
                metadata=ResponseMetadata(
                    id=_get(chunk, "id", "") or "",
                    model=_get(chunk, "model", "") or "",
                ),
            )


# ---------------------------------------------------------------------------
# Shared client mechanics
# ---------------------------------------------------------------------------
class ChatCompletionsClient(ChatClient, StreamingChatClient):
    """Base for adapters that speak the Chat Completions API.

    Subclasses provide option merging (``to_chat_completions_request``)
    and the SDK client (``_get_client``).
    """

    skip_first_stream_chunk: bool = False

    @abstractmethod
    def to_chat_completions_request(self, prompt: Prompt,
                                    native: Optional[ChatCompletionsRequest] = None
                                    ) -> ChatCompletionsRequest:
        """Translate ``prompt`` and merge options into a vendor request."""

    @abstractmethod
    def _get_client(self):
        """Return the SDK client exposing ``chat.completions.create``."""

    def call(self, prompt: Prompt,
             native: Optional[ChatCompletionsRequest] = None) -> ChatResponse:
        request = self.to_chat_completions_request(prompt, native)
        request.stream = False
        logger.debug("%s chat request: %s", self.provider_name, request)

        client = self._get_client()
        try:
            completion = client.chat.completions.create(**request.to_kwargs())
        except Exception as exc:
            logger.error("%s chat completion error: %s", self.provider_name, exc)
            raise

        logger.debug("%s chat completion: %s", self.provider_name, completion)
        return response_from_completion(completion)

    def stream(self, prompt: Prompt,
               native: Optional[ChatCompletionsRequest] = None) -> Iterator[ChatResponse]:
        # Translate eagerly so invalid prompts fail before any vendor call.
        request = self.to_chat_completions_request(prompt, native)
        request.stream = True
        logger.debug("%s streaming chat request: %s", self.provider_name, request)
        return self._stream(request)

    def _stream(self, request: ChatCompletionsRequest) -> Iterator[ChatResponse]:
        client = self._get_client()
        try:
            vendor_stream = client.chat.completions.create(**request.to_kwargs())
        except Exception as exc:
            logger.error("%s streaming error: %s", self.provider_name, exc)
            raise
        try:
            yield from responses_from_stream(
                vendor_stream, skip_first=self.skip_first_stream_chunk
            )
        finally:
            close = getattr(vendor_stream, "close", None)
            if close is not None:
                close()

