# CUI // SP-CTI
"""modelport LLM layer: Structured Exception Hierarchy.

Errors raised by this package are fail-fast and never retried here.
Errors coming from a vendor SDK are NOT wrapped; they propagate unchanged
so callers can apply the vendor's own retry/backoff semantics.

Usage:
    from modelport.llm.errors import InvalidArgumentError, UnsupportedOptionError

    raise UnsupportedOptionError("Titan has no top-k", provider="bedrock", option="top_k")
"""


class ModelPortError(Exception):
    """Base exception for all modelport errors.

    Attributes:
        provider: Name of the provider adapter that raised (e.g. "azure_openai").
        retryable: Whether the caller should retry the operation.
    """

    def __init__(self, message: str, provider: str = "", retryable: bool = False):
        super().__init__(message)
        self.provider = provider
        self.retryable = retryable


class InvalidArgumentError(ModelPortError, ValueError):
    """Invalid caller input; retrying will not help.

    Examples: empty instruction list, missing required option, prompt
    options of the wrong type.
    """

    def __init__(self, message: str, provider: str = ""):
        super().__init__(message, provider=provider, retryable=False)


class UnsupportedMessageRoleError(InvalidArgumentError):
    """A message role has no counterpart in the vendor's message kinds.

    Attributes:
        role: The offending role value.
    """

    def __init__(self, role, provider: str = ""):
        super().__init__(f"Unknown message type {role!r}", provider=provider)
        self.role = role


class UnsupportedOptionError(ModelPortError, NotImplementedError):
    """An option is not supported by the vendor model family.

    Attributes:
        option: Name of the unsupported option field.
    """

    def __init__(self, message: str, provider: str = "", option: str = ""):
        super().__init__(message, provider=provider, retryable=False)
        self.option = option


class ConfigurationError(ModelPortError):
    """Configuration error: missing, disabled or invalid client config."""

    def __init__(self, message: str, config_key: str = ""):
        super().__init__(message, provider="config", retryable=False)
        self.config_key = config_key
