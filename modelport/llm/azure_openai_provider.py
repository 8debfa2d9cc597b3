# CUI // SP-CTI
"""Azure OpenAI chat adapter.

Supports Azure OpenAI Service including Azure Government endpoints
(*.openai.azure.us). Uses the openai Python SDK AzureOpenAI client with
api_version and either an API key or Azure AD (Entra ID) tokens.

Option precedence for every call (highest first):
1. fields already set on a vendor-native ``ChatCompletionsRequest`` passed
   by the caller,
2. the prompt's per-call options,
3. the client's default options.

Known service defects handled here:
- The SDK's JSON merge drops fields of partially populated documents
  (Azure/azure-sdk-for-java#38183), so options are merged field by field.
- The first streamed chunk is an artifact and is discarded. This is a
  constructor flag so it can be switched off once the service is fixed.

Authentication:
- API Key: AZURE_OPENAI_API_KEY
- Azure AD Token: AZURE_OPENAI_AD_TOKEN or DefaultAzureCredential
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

logger = logging.getLogger("modelport.llm.azure_openai")

try:
    from openai import AzureOpenAI
    HAS_OPENAI = True
except ImportError:
    AzureOpenAI = None  # type: ignore[assignment, misc]
    HAS_OPENAI = False

try:
    from azure.identity import DefaultAzureCredential, get_bearer_token_provider
    HAS_AZURE_IDENTITY = True
except ImportError:
    DefaultAzureCredential = None  # type: ignore[assignment, misc]
    get_bearer_token_provider = None  # type: ignore[assignment]
    HAS_AZURE_IDENTITY = False


DEFAULT_API_VERSION = "2024-10-21"
DEFAULT_MODEL = "gpt-35-turbo"
DEFAULT_TEMPERATURE = 0.7

AZURE_GOV_SCOPE = "https://cognitiveservices.azure.us/.default"
AZURE_COMMERCIAL_SCOPE = "https://cognitiveservices.azure.com/.default"


@dataclass
class AzureOpenAiChatOptions(MergeableOptions):
    """Azure OpenAI chat options. ``model`` is the deployment name."""
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

    unsupported_fields = ("top_k",)
    provider_name = "azure_openai"


def default_chat_options() -> AzureOpenAiChatOptions:
    return AzureOpenAiChatOptions(model=DEFAULT_MODEL, temperature=DEFAULT_TEMPERATURE)


def _build_azure_client(endpoint: str, api_key: str, api_version: str,
                        use_ad_token: bool, ad_token: str):
    """Create an ``AzureOpenAI`` SDK client with the appropriate auth."""
    if not HAS_OPENAI:
        raise ImportError(
            "openai SDK required for Azure OpenAI. "
            "Install: pip install openai"
        )

    if not endpoint:
        raise ValueError(
            "Azure OpenAI endpoint required. Set AZURE_OPENAI_ENDPOINT "
            "or pass endpoint= to constructor."
        )

    kwargs: Dict[str, Any] = {
        "azure_endpoint": endpoint,
        "api_version": api_version,
    }

    if use_ad_token or ad_token:
        if ad_token:
            kwargs["azure_ad_token"] = ad_token
        elif HAS_AZURE_IDENTITY:
            scope = (
                AZURE_GOV_SCOPE if ".azure.us" in endpoint.lower()
                else AZURE_COMMERCIAL_SCOPE
            )
            credential = DefaultAzureCredential()
            kwargs["azure_ad_token_provider"] = get_bearer_token_provider(
                credential, scope
            )
        else:
            raise ImportError(
                "azure-identity SDK required for Azure AD auth. "
                "Install: pip install azure-identity"
            )
    else:
        if not api_key:
            raise ValueError(
                "Azure OpenAI API key required. Set AZURE_OPENAI_API_KEY "
                "or pass api_key= to constructor."
            )
        kwargs["api_key"] = api_key

    return AzureOpenAI(**kwargs)


class AzureConnection:
    """Endpoint and credentials shared by the Azure chat and embedding clients."""

    def __init__(
        self,
        endpoint: str = "",
        api_key: str = "",
        api_version: str = DEFAULT_API_VERSION,
        use_ad_token: bool = False,
        ad_token: str = "",
    ):
        self.endpoint = endpoint or os.environ.get("AZURE_OPENAI_ENDPOINT", "")
        self.api_key = api_key or os.environ.get("AZURE_OPENAI_API_KEY", "")
        self.api_version = api_version or os.environ.get(
            "AZURE_OPENAI_API_VERSION", DEFAULT_API_VERSION
        )
        self.use_ad_token = use_ad_token
        self.ad_token = ad_token or os.environ.get("AZURE_OPENAI_AD_TOKEN", "")

    @property
    def is_government(self) -> bool:
        return ".azure.us" in self.endpoint.lower()

    def create_client(self):
        return _build_azure_client(
            self.endpoint, self.api_key, self.api_version,
            self.use_ad_token, self.ad_token,
        )


class AzureOpenAiChatClient(ChatCompletionsClient):
    """Azure OpenAI chat adapter (single-shot and streaming).

    Args:
        client: Pre-built ``AzureOpenAI`` client. Built lazily from
            ``connection`` when omitted.
        default_options: Library-wide defaults; never mutated.
        connection: Endpoint/credentials for the lazily built client.
        skip_first_stream_chunk: Discard the first streamed chunk.
    """

    def __init__(
        self,
        client=None,
        default_options: Optional[AzureOpenAiChatOptions] = None,
        connection: Optional[AzureConnection] = None,
        skip_first_stream_chunk: bool = True,
    ):
        self._client = client
        self._connection = connection
        self._default_options = (
            default_options if default_options is not None else default_chat_options()
        )
        self.skip_first_stream_chunk = skip_first_stream_chunk

    @property
    def provider_name(self) -> str:
        return "azure_openai"

    @property
    def default_options(self) -> AzureOpenAiChatOptions:
        return self._default_options

    def _get_client(self):
        """Lazy-init AzureOpenAI client."""
        if self._client is None:
            connection = self._connection or AzureConnection()
            self._client = connection.create_client()
        return self._client

    def _runtime_options(self, options: Any) -> Optional[AzureOpenAiChatOptions]:
        if options is None:
            return None
        if isinstance(options, AzureOpenAiChatOptions):
            return options
        if isinstance(options, MergeableOptions):
            return options.copy_to(AzureOpenAiChatOptions)
        raise InvalidArgumentError(
            "Prompt options are not of type ChatOptions: "
            + type(options).__name__,
            provider=self.provider_name,
        )

    def to_chat_completions_request(self, prompt: Prompt,
                                    native: Optional[ChatCompletionsRequest] = None
                                    ) -> ChatCompletionsRequest:
        messages = messages_to_openai(prompt.messages, self.provider_name)
        runtime = self._runtime_options(prompt.options)
        request = merge_options(
            ChatCompletionsRequest, native, runtime, self._default_options
        )
        request.messages = messages
        return request
