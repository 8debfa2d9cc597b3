# CUI // SP-CTI
"""AWS Bedrock adapters for the Amazon Titan model family.

Titan text models take a single ``inputText`` plus a
``textGenerationConfig``; they have no notion of message roles, so the
prompt's messages are concatenated. Titan has no top-k sampling and the
options type refuses it outright.

Titan embedding models embed one input per invocation. Batches are
served by sequential calls and fail as a whole on the first error.
"""

import json
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from modelport.llm.errors import InvalidArgumentError, UnsupportedOptionError
from modelport.llm.options import MergeableOptions, as_list, merge_options, option
from modelport.llm.provider import (
    ChatClient,
    ChatResponse,
    ChoiceMetadata,
    Embedding,
    EmbeddingClient,
    EmbeddingRequest,
    EmbeddingResponse,
    Generation,
    Prompt,
    ResponseMetadata,
    StreamingChatClient,
    Usage,
    require_inputs,
)

logger = logging.getLogger("modelport.llm.bedrock")

try:
    import boto3
    HAS_BOTO3 = True
except ImportError:
    boto3 = None
    HAS_BOTO3 = False


DEFAULT_REGION = "us-gov-west-1"
DEFAULT_CHAT_MODEL = "amazon.titan-text-express-v1"
DEFAULT_EMBEDDING_MODEL = "amazon.titan-embed-image-v1"
DEFAULT_TEMPERATURE = 0.7

# 1x1 PNG used to probe image embedding dimensions.
_PROBE_IMAGE = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNk+A8AAQUBAScY42YAAAAASUVORK5CYII="
)


def build_bedrock_client(region: Optional[str] = None, access_key: str = "",
                         secret_key: str = ""):
    """Create a boto3 ``bedrock-runtime`` client.

    Explicit keys are optional; boto3's default credential chain applies
    otherwise.
    """
    if not HAS_BOTO3:
        raise ImportError("boto3 is required for Bedrock. Install: pip install boto3")
    kwargs: Dict[str, Any] = {
        "region_name": region or os.environ.get("AWS_DEFAULT_REGION", DEFAULT_REGION),
    }
    if access_key and secret_key:
        kwargs["aws_access_key_id"] = access_key
        kwargs["aws_secret_access_key"] = secret_key
    return boto3.client("bedrock-runtime", **kwargs)


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------
@dataclass
class BedrockTitanChatOptions(MergeableOptions):
    """Titan ``textGenerationConfig`` options.

    ``model`` selects the Titan model id for one call. ``top_k`` does not
    exist for Titan: reading or assigning it raises UnsupportedOptionError,
    as does merging in a source that sets it.
    """
    model: Optional[str] = option()
    temperature: Optional[float] = option(normalize=float)
    top_p: Optional[float] = option(normalize=float)
    max_token_count: Optional[int] = option(normalize=int, alias="max_tokens")
    stop_sequences: Optional[List[str]] = option(normalize=as_list, alias="stop")

    unsupported_fields = ("top_k",)
    provider_name = "bedrock"

    @property
    def top_k(self):
        raise UnsupportedOptionError(
            "Bedrock Titan Chat does not support the 'TopK' option.",
            provider="bedrock", option="top_k",
        )

    @top_k.setter
    def top_k(self, value):
        raise UnsupportedOptionError(
            "Bedrock Titan Chat does not support the 'TopK' option.",
            provider="bedrock", option="top_k",
        )

    def to_generation_config(self) -> Dict[str, Any]:
        """Titan wire names for the present fields."""
        config = {
            "temperature": self.temperature,
            "topP": self.top_p,
            "maxTokenCount": self.max_token_count,
            "stopSequences": self.stop_sequences,
        }
        return {k: v for k, v in config.items() if v is not None and v != []}


class BedrockTitanChatClient(ChatClient, StreamingChatClient):
    """Amazon Titan text adapter over ``bedrock-runtime``."""

    def __init__(self, client=None, model_id: str = DEFAULT_CHAT_MODEL,
                 default_options: Optional[BedrockTitanChatOptions] = None,
                 region: Optional[str] = None, access_key: str = "",
                 secret_key: str = ""):
        self._client = client
        self._model_id = model_id
        self._region = region
        self._access_key = access_key
        self._secret_key = secret_key
        self._default_options = (
            default_options if default_options is not None
            else BedrockTitanChatOptions(temperature=DEFAULT_TEMPERATURE)
        )

    @property
    def provider_name(self) -> str:
        return "bedrock"

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def default_options(self) -> BedrockTitanChatOptions:
        return self._default_options

    def _get_client(self):
        """Lazy-init boto3 bedrock-runtime client."""
        if self._client is None:
            self._client = build_bedrock_client(
                self._region, self._access_key, self._secret_key
            )
        return self._client

    def _runtime_options(self, options: Any) -> Optional[BedrockTitanChatOptions]:
        if options is None or isinstance(options, BedrockTitanChatOptions):
            return options
        if isinstance(options, MergeableOptions):
            return options.copy_to(BedrockTitanChatOptions)
        raise InvalidArgumentError(
            "Prompt options are not of type ChatOptions: " + type(options).__name__,
            provider=self.provider_name,
        )

    def _merged_options(self, prompt: Prompt) -> BedrockTitanChatOptions:
        return merge_options(
            BedrockTitanChatOptions,
            self._runtime_options(prompt.options),
            self._default_options,
        )

    def resolve_model_id(self, prompt: Prompt) -> str:
        """Model id for this call: an options ``model`` over the client's."""
        return self._merged_options(prompt).model or self._model_id

    def create_request(self, prompt: Prompt) -> Dict[str, Any]:
        """Build the Titan request body (request options over defaults)."""
        merged = self._merged_options(prompt)
        body: Dict[str, Any] = {"inputText": prompt.contents}
        config = merged.to_generation_config()
        if config:
            body["textGenerationConfig"] = config
        return body

    def call(self, prompt: Prompt) -> ChatResponse:
        body = self.create_request(prompt)
        model_id = self.resolve_model_id(prompt)
        logger.debug("Titan request (%s): %s", model_id, body)
        client = self._get_client()
        try:
            raw = client.invoke_model(
                modelId=model_id,
                body=json.dumps(body),
                accept="application/json",
                contentType="application/json",
            )
        except Exception as exc:
            logger.error("Bedrock Titan invocation error: %s", exc)
            raise
        return self._parse_response(json.loads(raw["body"].read()), model_id)

    def _parse_response(self, response_body: dict, model_id: str) -> ChatResponse:
        results = response_body.get("results", [])
        generations = [
            Generation(
                text=r.get("outputText", ""),
                metadata=ChoiceMetadata(finish_reason=r.get("completionReason")),
            )
            for r in results
        ]
        prompt_tokens = response_body.get("inputTextTokenCount", 0) or 0
        generation_tokens = sum(r.get("tokenCount", 0) or 0 for r in results)
        usage = Usage(
            prompt_tokens=prompt_tokens,
            generation_tokens=generation_tokens,
            total_tokens=prompt_tokens + generation_tokens,
        )
        return ChatResponse(
            generations=generations,
            metadata=ResponseMetadata(model=model_id, usage=usage),
        )

    def stream(self, prompt: Prompt) -> Iterator[ChatResponse]:
        body = self.create_request(prompt)
        model_id = self.resolve_model_id(prompt)
        logger.debug("Titan streaming request (%s): %s", model_id, body)
        return self._stream(body, model_id)

    def _stream(self, body: Dict[str, Any], model_id: str) -> Iterator[ChatResponse]:
        client = self._get_client()
        try:
            raw = client.invoke_model_with_response_stream(
                modelId=model_id,
                body=json.dumps(body),
                accept="application/json",
                contentType="application/json",
            )
        except Exception as exc:
            logger.error("Bedrock Titan stream error: %s", exc)
            raise
        event_stream = raw.get("body", [])
        try:
            for event in event_stream:
                chunk = event.get("chunk")
                if not chunk:
                    continue
                data = json.loads(chunk["bytes"])
                text = data.get("outputText", "")
                reason = data.get("completionReason")
                if not text and reason is None:
                    continue
                yield ChatResponse(
                    generations=[Generation(
                        text=text, metadata=ChoiceMetadata(finish_reason=reason),
                    )],
                    metadata=ResponseMetadata(model=model_id),
                )
        finally:
            close = getattr(event_stream, "close", None)
            if close is not None:
                close()


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------
class TitanInputType(str, Enum):
    """Titan embedding input: plain text or a base64-encoded image."""
    TEXT = "TEXT"
    IMAGE = "IMAGE"


class BedrockTitanEmbeddingClient(EmbeddingClient):
    """Amazon Titan embedding adapter. No native batch support."""

    KNOWN_DIMENSIONS = {
        "amazon.titan-embed-text-v1": 1536,
        "amazon.titan-embed-text-v2:0": 1024,
        "amazon.titan-embed-image-v1": 1024,
    }

    def __init__(self, client=None, model_id: str = DEFAULT_EMBEDDING_MODEL,
                 input_type: TitanInputType = TitanInputType.TEXT,
                 region: Optional[str] = None, access_key: str = "",
                 secret_key: str = ""):
        self._client = client
        self._model_id = model_id
        self.input_type = TitanInputType(input_type)
        self._region = region
        self._access_key = access_key
        self._secret_key = secret_key
        self._dimensions = None

    @property
    def provider_name(self) -> str:
        return "bedrock"

    @property
    def model_id(self) -> str:
        return self._model_id

    def with_input_type(self, input_type: TitanInputType) -> "BedrockTitanEmbeddingClient":
        self.input_type = TitanInputType(input_type)
        self._dimensions = None
        return self

    def _get_client(self):
        if self._client is None:
            self._client = build_bedrock_client(
                self._region, self._access_key, self._secret_key
            )
        return self._client

    def _request_body(self, content: str) -> Dict[str, str]:
        if self.input_type == TitanInputType.IMAGE:
            return {"inputImage": content}
        return {"inputText": content}

    def _embed_one(self, content: str) -> List[float]:
        client = self._get_client()
        try:
            raw = client.invoke_model(
                modelId=self._model_id,
                body=json.dumps(self._request_body(content)),
                accept="application/json",
                contentType="application/json",
            )
        except Exception as exc:
            logger.error("Bedrock Titan embedding error: %s", exc)
            raise
        return json.loads(raw["body"].read()).get("embedding", [])

    def call(self, request: EmbeddingRequest) -> EmbeddingResponse:
        require_inputs(request.inputs, self.provider_name)
        if len(request.inputs) != 1:
            logger.warning(
                "Titan Embedding does not support batch embedding. "
                "Will make %d sequential API calls.", len(request.inputs),
            )
        vectors = [self._embed_one(content) for content in request.inputs]
        return EmbeddingResponse(
            embeddings=[Embedding(vector=v, index=i) for i, v in enumerate(vectors)],
            metadata={"model": self._model_id, "input_type": self.input_type.value},
        )

    def embed_document(self, document) -> List[float]:
        return self.embed(document.content)

    @property
    def dimensions(self) -> int:
        if (self._dimensions is None and self.input_type == TitanInputType.IMAGE
                and self._model_id not in self.KNOWN_DIMENSIONS):
            self._dimensions = len(self.embed(_PROBE_IMAGE))
        return super().dimensions
