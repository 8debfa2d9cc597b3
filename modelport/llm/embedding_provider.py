# CUI // SP-CTI
"""OpenAI and Azure OpenAI embedding adapters.

Both vendors accept a batch of inputs in one call and return entries
tagged with their input index; results are re-ordered by that index.
Bedrock Titan and PostgresML embeddings live in their own modules.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type

from modelport.llm.azure_openai_provider import AzureConnection
from modelport.llm.errors import InvalidArgumentError
from modelport.llm.openai_provider import DEFAULT_BASE_URL, build_openai_client
from modelport.llm.options import MergeableOptions, merge_options, option
from modelport.llm.provider import (
    Embedding,
    EmbeddingClient,
    EmbeddingRequest,
    EmbeddingResponse,
    Usage,
    require_inputs,
)

logger = logging.getLogger("modelport.llm.embedding")

DEFAULT_EMBEDDING_MODEL = "text-embedding-ada-002"

_KNOWN_DIMENSIONS = {
    "text-embedding-ada-002": 1536,
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
}


@dataclass
class OpenAiEmbeddingOptions(MergeableOptions):
    model: Optional[str] = option()
    user: Optional[str] = option()
    dimensions: Optional[int] = option(normalize=int)
    encoding_format: Optional[str] = option()


@dataclass
class AzureOpenAiEmbeddingOptions(MergeableOptions):
    """``model`` is the Azure deployment name."""
    model: Optional[str] = option()
    user: Optional[str] = option()


class _EmbeddingsApiClient(EmbeddingClient):
    """Shared mechanics for clients exposing ``embeddings.create``."""

    KNOWN_DIMENSIONS = _KNOWN_DIMENSIONS
    options_cls: Type[MergeableOptions] = OpenAiEmbeddingOptions

    _client = None
    _default_options: Any = None

    @property
    def default_options(self):
        return self._default_options

    @property
    def model_id(self) -> str:
        return getattr(self._default_options, "model", None) or ""

    def _get_client(self):
        raise NotImplementedError

    def _runtime_options(self, options: Any):
        if options is None or isinstance(options, self.options_cls):
            return options
        if isinstance(options, MergeableOptions):
            return options.copy_to(self.options_cls)
        raise InvalidArgumentError(
            "Embedding options are not of type {}: {}".format(
                self.options_cls.__name__, type(options).__name__
            ),
            provider=self.provider_name,
        )

    def to_embedding_request(self, request: EmbeddingRequest) -> Dict[str, Any]:
        """Vendor kwargs for ``embeddings.create`` (request over defaults)."""
        require_inputs(request.inputs, self.provider_name)
        merged = merge_options(
            self.options_cls,
            self._runtime_options(request.options),
            self._default_options,
        )
        kwargs = merged.to_dict()
        kwargs["input"] = list(request.inputs)
        return kwargs

    def call(self, request: EmbeddingRequest) -> EmbeddingResponse:
        kwargs = self.to_embedding_request(request)
        logger.debug("%s embedding request: model=%s inputs=%d",
                     self.provider_name, kwargs.get("model"), len(kwargs["input"]))
        client = self._get_client()
        try:
            response = client.embeddings.create(**kwargs)
        except Exception as exc:
            logger.error("%s embedding error: %s", self.provider_name, exc)
            raise

        data = sorted(response.data, key=lambda item: item.index)
        metadata: Dict[str, Any] = {"model": getattr(response, "model", "") or ""}
        usage = getattr(response, "usage", None)
        if usage is not None:
            prompt_tokens = getattr(usage, "prompt_tokens", 0) or 0
            metadata["usage"] = Usage(
                prompt_tokens=prompt_tokens,
                total_tokens=getattr(usage, "total_tokens", 0) or prompt_tokens,
            )
        return EmbeddingResponse(
            embeddings=[Embedding(vector=item.embedding, index=item.index) for item in data],
            metadata=metadata,
        )


class OpenAiEmbeddingClient(_EmbeddingsApiClient):
    """OpenAI-compatible embedding adapter.

    Works with the OpenAI API, Ollama, vLLM, or any server exposing the
    OpenAI embeddings endpoint via configurable base_url.
    """

    options_cls = OpenAiEmbeddingOptions

    def __init__(self, client=None, default_options: Optional[OpenAiEmbeddingOptions] = None,
                 api_key: str = "", base_url: str = DEFAULT_BASE_URL):
        self._client = client
        self._api_key = api_key
        self._base_url = base_url
        self._default_options = (
            default_options if default_options is not None
            else OpenAiEmbeddingOptions(model=DEFAULT_EMBEDDING_MODEL)
        )
        self._dimensions = None

    @property
    def provider_name(self) -> str:
        if "localhost" in self._base_url or "127.0.0.1" in self._base_url:
            return "local"
        return "openai"

    def _get_client(self):
        if self._client is None:
            self._client = build_openai_client(self._api_key, self._base_url)
        return self._client


class AzureOpenAiEmbeddingClient(_EmbeddingsApiClient):
    """Azure OpenAI embedding adapter."""

    options_cls = AzureOpenAiEmbeddingOptions

    def __init__(self, client=None,
                 default_options: Optional[AzureOpenAiEmbeddingOptions] = None,
                 connection: Optional[AzureConnection] = None):
        self._client = client
        self._connection = connection
        self._default_options = (
            default_options if default_options is not None
            else AzureOpenAiEmbeddingOptions(model=DEFAULT_EMBEDDING_MODEL)
        )
        self._dimensions = None

    @property
    def provider_name(self) -> str:
        return "azure_openai"

    def _get_client(self):
        if self._client is None:
            connection = self._connection or AzureConnection()
            self._client = connection.create_client()
        return self._client
