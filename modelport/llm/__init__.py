# CUI // SP-CTI
"""modelport LLM client layer.

Vendor-agnostic chat, streaming chat, embedding and image generation
clients for Azure OpenAI, OpenAI, AWS Bedrock (Titan), PostgresML and
Stability AI, with a single field-by-field option merging protocol and a
YAML-driven client registry.

Usage::

    from modelport.llm import get_registry
    from modelport.llm.provider import ChatOptions, Prompt

    chat = get_registry().get_chat_client("azure")
    response = chat.call(Prompt("Tell me a joke",
                                options=ChatOptions(temperature=0.2)))
    print(response.result.text)

    embeddings = get_registry().get_embedding_client()
    vector = embeddings.embed("search query text")
"""

from modelport.llm.errors import (
    ConfigurationError,
    InvalidArgumentError,
    ModelPortError,
    UnsupportedMessageRoleError,
    UnsupportedOptionError,
)
from modelport.llm.options import MergeableOptions, merge, merge_options
from modelport.llm.provider import (
    ChatClient,
    ChatOptions,
    ChatResponse,
    EmbeddingClient,
    EmbeddingRequest,
    EmbeddingResponse,
    ImageClient,
    ImagePrompt,
    ImageResponse,
    Message,
    Prompt,
    StreamingChatClient,
)

_registry_instance = None


def get_registry(config_path=None):
    """Get the singleton client registry.

    Args:
        config_path: Optional path to model_config.yaml override.

    Returns:
        ClientRegistry instance.
    """
    global _registry_instance
    if _registry_instance is None:
        from modelport.llm.registry import ClientRegistry
        _registry_instance = ClientRegistry(config_path=config_path)
    return _registry_instance


__all__ = [
    "ChatClient",
    "ChatOptions",
    "ChatResponse",
    "ConfigurationError",
    "EmbeddingClient",
    "EmbeddingRequest",
    "EmbeddingResponse",
    "ImageClient",
    "ImagePrompt",
    "ImageResponse",
    "InvalidArgumentError",
    "MergeableOptions",
    "Message",
    "ModelPortError",
    "Prompt",
    "StreamingChatClient",
    "UnsupportedMessageRoleError",
    "UnsupportedOptionError",
    "get_registry",
    "merge",
    "merge_options",
]
