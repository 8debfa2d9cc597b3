# CUI // SP-CTI
"""Vendor-agnostic client base classes and data types.

Defines the unified prompt/response model and the abstract interfaces
that every provider adapter must satisfy.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from modelport.llm.errors import InvalidArgumentError
from modelport.llm.options import MergeableOptions, as_list, option

logger = logging.getLogger("modelport.llm.provider")


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------
class MessageRole(str, Enum):
    """Roles every chat adapter understands."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """One role-tagged message. ``role`` may hold any value; translators
    reject the ones their vendor cannot represent."""
    role: str
    content: str = ""

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(MessageRole.SYSTEM.value, content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(MessageRole.USER.value, content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(MessageRole.ASSISTANT.value, content)


@dataclass
class ChatOptions(MergeableOptions):
    """Portable chat options accepted by every chat adapter."""
    model: Optional[str] = option()
    temperature: Optional[float] = option(normalize=float)
    top_p: Optional[float] = option(normalize=float)
    top_k: Optional[int] = option(normalize=int)
    max_tokens: Optional[int] = option(normalize=int)
    stop_sequences: Optional[List[str]] = option(normalize=as_list, alias="stop")


@dataclass
class Prompt:
    """Ordered messages plus optional per-call options.

    A plain string becomes a single user message.
    """
    messages: Union[str, Message, Sequence[Message]]
    options: Optional[Any] = None

    def __post_init__(self):
        if isinstance(self.messages, str):
            self.messages = [Message.user(self.messages)]
        elif isinstance(self.messages, Message):
            self.messages = [self.messages]
        self.messages = list(self.messages or [])
        if not self.messages:
            raise InvalidArgumentError("Prompt requires at least one message")

    @property
    def contents(self) -> str:
        """All message contents joined in order."""
        return "".join(m.content for m in self.messages)


# ---------------------------------------------------------------------------
# Chat response
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ChoiceMetadata:
    """Per-choice metadata."""
    finish_reason: Optional[str] = None
    content_filter: Optional[Any] = None


@dataclass(frozen=True)
class PromptFilterMetadata:
    """Content-filter results attached to one prompt index."""
    prompt_index: int
    content_filter: Optional[Any] = None


@dataclass(frozen=True)
class Usage:
    prompt_tokens: int = 0
    generation_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class Generation:
    """One candidate output."""
    text: Optional[str]
    metadata: ChoiceMetadata = field(default_factory=ChoiceMetadata)


@dataclass(frozen=True)
class ResponseMetadata:
    id: str = ""
    model: str = ""
    usage: Optional[Usage] = None
    prompt_metadata: List[PromptFilterMetadata] = field(default_factory=list)


@dataclass(frozen=True)
class ChatResponse:
    """Unified chat result (or one streamed partial)."""
    generations: List[Generation] = field(default_factory=list)
    metadata: ResponseMetadata = field(default_factory=ResponseMetadata)

    @property
    def result(self) -> Optional[Generation]:
        return self.generations[0] if self.generations else None


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------
class MetadataMode(str, Enum):
    """Which document metadata is folded into the text before embedding."""
    ALL = "ALL"
    EMBED = "EMBED"
    INFERENCE = "INFERENCE"
    NONE = "NONE"


@dataclass
class Document:
    """Text plus metadata to embed."""
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    excluded_embed_metadata_keys: List[str] = field(default_factory=list)
    excluded_inference_metadata_keys: List[str] = field(default_factory=list)

    def formatted_content(self, mode: MetadataMode = MetadataMode.ALL) -> str:
        """Render ``metadata`` as ``key: value`` lines above the content."""
        mode = MetadataMode(mode)
        if mode == MetadataMode.NONE:
            return self.content
        excluded = set()
        if mode == MetadataMode.EMBED:
            excluded = set(self.excluded_embed_metadata_keys)
        elif mode == MetadataMode.INFERENCE:
            excluded = set(self.excluded_inference_metadata_keys)
        lines = [
            "{}: {}".format(k, v) for k, v in self.metadata.items()
            if k not in excluded
        ]
        if not lines:
            return self.content
        return "\n".join(lines) + "\n\n" + self.content


@dataclass
class EmbeddingRequest:
    inputs: List[str]
    options: Optional[Any] = None


@dataclass(frozen=True)
class Embedding:
    vector: List[float]
    index: int


@dataclass
class EmbeddingResponse:
    embeddings: List[Embedding] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def result(self) -> Optional[Embedding]:
        return self.embeddings[0] if self.embeddings else None


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ImageMessage:
    text: str
    weight: Optional[float] = None


@dataclass
class ImagePrompt:
    messages: Union[str, ImageMessage, Sequence[ImageMessage]]
    options: Optional[Any] = None

    def __post_init__(self):
        if isinstance(self.messages, str):
            self.messages = [ImageMessage(self.messages)]
        elif isinstance(self.messages, ImageMessage):
            self.messages = [self.messages]
        self.messages = list(self.messages or [])
        if not self.messages:
            raise InvalidArgumentError("Image prompt requires at least one message")


@dataclass(frozen=True)
class ImageGeneration:
    b64_json: Optional[str] = None
    url: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ImageResponse:
    generations: List[ImageGeneration] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def result(self) -> Optional[ImageGeneration]:
        return self.generations[0] if self.generations else None


# ---------------------------------------------------------------------------
# Abstract base: chat
# ---------------------------------------------------------------------------
class ChatClient(ABC):
    """Abstract base class for single-shot chat adapters.

    Each implementation handles:
    - Option merging (defaults, per-call, vendor-native)
    - Message format translation (unified -> vendor)
    - The vendor call itself, without retry
    - Response parsing back to ChatResponse
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider identifier (e.g. 'azure_openai', 'bedrock')."""

    @abstractmethod
    def call(self, prompt: Prompt) -> ChatResponse:
        """Invoke the model synchronously and return the unified response."""


class StreamingChatClient(ABC):
    """Abstract base class for streaming chat adapters."""

    @abstractmethod
    def stream(self, prompt: Prompt) -> Iterator[ChatResponse]:
        """Return a lazy, forward-only stream of partial responses.

        Closing the returned generator must close the vendor stream.
        A stream cannot be restarted; issue a new call instead.
        """


# ---------------------------------------------------------------------------
# Abstract base: embeddings
# ---------------------------------------------------------------------------
class EmbeddingClient(ABC):
    """Abstract base class for embedding adapters."""

    #: Well-known model dimensions, checked before probing the vendor.
    KNOWN_DIMENSIONS: Dict[str, int] = {}

    _dimensions: Optional[int] = None

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider identifier."""

    @abstractmethod
    def call(self, request: EmbeddingRequest) -> EmbeddingResponse:
        """Embed every input of ``request``, indexed in input order."""

    def embed(self, text: str) -> List[float]:
        """Generate an embedding vector for a single text."""
        response = self.call(EmbeddingRequest([text]))
        return response.result.vector if response.result else []

    def embed_document(self, document: Document) -> List[float]:
        return self.embed(document.formatted_content(MetadataMode.EMBED))

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for multiple texts, in input order."""
        return [e.vector for e in self.embed_for_response(texts).embeddings]

    def embed_for_response(self, texts: List[str]) -> EmbeddingResponse:
        return self.call(EmbeddingRequest(list(texts)))

    @property
    def model_id(self) -> str:
        return ""

    @property
    def dimensions(self) -> int:
        """Embedding dimensionality, probed once with a sample text if unknown."""
        if self._dimensions is None:
            known = self.KNOWN_DIMENSIONS.get(self.model_id)
            if known is not None:
                self._dimensions = known
            else:
                logger.debug("Probing embedding dimensions for %s", self.provider_name)
                self._dimensions = len(self.embed("Hello World"))
        return self._dimensions


# ---------------------------------------------------------------------------
# Abstract base: images
# ---------------------------------------------------------------------------
class ImageClient(ABC):
    """Abstract base class for image generation adapters."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider identifier."""

    @abstractmethod
    def call(self, prompt: ImagePrompt) -> ImageResponse:
        """Generate images for ``prompt``."""


def require_inputs(inputs: Sequence, provider: str = "") -> None:
    """Fail fast on an empty instruction list."""
    if not inputs:
        raise InvalidArgumentError("At least one text is required!", provider=provider)
