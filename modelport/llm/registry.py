# CUI // SP-CTI
"""Config-driven client registry.

Reads args/model_config.yaml and builds chat, embedding and image clients
on demand. Each provider entry names a vendor ``type`` plus connection
settings, and may carry ``chat``, ``embedding`` and ``image`` sections:

    providers:
      azure:
        type: azure_openai
        endpoint: ${AZURE_OPENAI_ENDPOINT:-}
        api_key_env: AZURE_OPENAI_API_KEY
        chat:
          options: {model: gpt-35-turbo, temperature: 0.7}

A section-level connection value (``api_key``, ``api_key_env``,
``base_url``, ...) beats the provider-level one. Sections are enabled
unless ``enabled: false``; Bedrock sections stay disabled unless
``enabled: true``. Clients are cached per provider and capability.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

try:
    import yaml
except ImportError:
    yaml = None

from modelport.llm.errors import ConfigurationError
from modelport.llm.provider import ChatClient, EmbeddingClient, ImageClient

logger = logging.getLogger("modelport.llm.registry")

BASE_DIR = Path(__file__).resolve().parent.parent.parent
DEFAULT_CONFIG_PATH = BASE_DIR / "args" / "model_config.yaml"

# Provider types whose sections are opt-in.
_DISABLED_BY_DEFAULT = {"bedrock"}


def _expand_env(value):
    """Expand ${VAR:-default} patterns in string values."""
    if not isinstance(value, str):
        return value
    pattern = r'\$\{([^}]+)\}'
    def replacer(match):
        expr = match.group(1)
        if ":-" in expr:
            var, default = expr.split(":-", 1)
            return os.environ.get(var, default)
        return os.environ.get(expr, match.group(0))
    return re.sub(pattern, replacer, value)


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _expand_tree(value):
    """Apply ``_expand_env`` to every string in nested dicts/lists."""
    if isinstance(value, dict):
        return {k: _expand_tree(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_tree(v) for v in value]
    return _expand_env(value)


class ClientRegistry:
    """Builds and caches vendor clients from YAML configuration."""

    def __init__(self, config_path=None, config: Optional[Dict] = None):
        self._config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self._config: Dict = {}
        self._clients: Dict[Tuple[str, str], Any] = {}

        if config is not None:
            self._config = config
        else:
            self._load_config()

    # -------------------------------------------------------------------
    # Config loading
    # -------------------------------------------------------------------
    def _load_config(self):
        """Load and parse model_config.yaml."""
        if yaml is None:
            logger.warning("PyYAML not available; using empty model config")
            self._config = {}
            return
        if not self._config_path.exists():
            logger.warning("Model config not found at %s; using empty config", self._config_path)
            self._config = {}
            return
        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                self._config = yaml.safe_load(f) or {}
            logger.info(
                "Model config loaded: %d providers",
                len(self._config.get("providers", {})),
            )
        except (OSError, yaml.YAMLError) as exc:
            logger.error("Failed to load model config: %s", exc)
            self._config = {}

    @property
    def providers(self) -> Dict[str, Dict]:
        return self._config.get("providers", {}) or {}

    def _default_provider(self, capability: str) -> str:
        settings = self._config.get("settings", {}) or {}
        name = settings.get("default_" + capability, "")
        if not name:
            raise ConfigurationError(
                "No provider named and settings.default_{} is not set".format(capability),
                config_key="settings.default_" + capability,
            )
        return name

    def is_enabled(self, provider_name: str, capability: str) -> bool:
        """Whether ``providers.<name>.<capability>`` exists and is switched on."""
        provider_cfg = self.providers.get(provider_name) or {}
        section = provider_cfg.get(capability)
        if section is None:
            return False
        section = section or {}
        default = provider_cfg.get("type", "") not in _DISABLED_BY_DEFAULT
        return _as_bool(section.get("enabled", default))

    def _section(self, provider_name: str, capability: str) -> Tuple[Dict, Dict]:
        provider_cfg = self.providers.get(provider_name)
        if not provider_cfg:
            raise ConfigurationError(
                "Provider '{}' not found in config".format(provider_name),
                config_key="providers." + provider_name,
            )
        key = "providers.{}.{}".format(provider_name, capability)
        if provider_cfg.get(capability) is None:
            raise ConfigurationError(
                "Provider '{}' has no {} section".format(provider_name, capability),
                config_key=key,
            )
        if not self.is_enabled(provider_name, capability):
            logger.warning("%s is disabled (set enabled: true to use it)", key)
            raise ConfigurationError("{} is disabled".format(key), config_key=key)
        return provider_cfg, provider_cfg.get(capability) or {}

    # -------------------------------------------------------------------
    # Connection settings
    # -------------------------------------------------------------------
    @staticmethod
    def _setting(name: str, section: Dict, provider_cfg: Dict, default: Any = "") -> Any:
        """Section-level value, else provider-level value, env-expanded."""
        for cfg in (section, provider_cfg):
            value = cfg.get(name)
            if value is not None and value != "":
                return _expand_env(value)
        return default

    @classmethod
    def _secret(cls, name: str, section: Dict, provider_cfg: Dict) -> str:
        """Resolve ``<name>`` or ``<name>_env`` (section before provider)."""
        for cfg in (section, provider_cfg):
            value = _expand_env(cfg.get(name, ""))
            if value:
                return value
            env_name = cfg.get(name + "_env", "")
            if env_name and os.environ.get(env_name):
                return os.environ[env_name]
        return ""

    @staticmethod
    def _options(options_cls, section: Dict, defaults=None):
        """Bind ``section.options`` over the client's built-in defaults."""
        data = section.get("options")
        if not data:
            return defaults
        return options_cls.from_dict(_expand_tree(data)).merged_with(defaults)

    # -------------------------------------------------------------------
    # Client construction (lazy, cached)
    # -------------------------------------------------------------------
    def _cached(self, provider_name: str, capability: str,
                factory: Callable[[str, Dict, Dict], Any]):
        key = (provider_name, capability)
        if key not in self._clients:
            provider_cfg, section = self._section(provider_name, capability)
            client = factory(provider_cfg.get("type", ""), provider_cfg, section)
            if client is None:
                raise ConfigurationError(
                    "Provider type '{}' does not offer {}".format(
                        provider_cfg.get("type", ""), capability
                    ),
                    config_key="providers.{}.type".format(provider_name),
                )
            logger.info("Built %s client for provider '%s'", capability, provider_name)
            self._clients[key] = client
        return self._clients[key]

    def get_chat_client(self, provider_name: Optional[str] = None) -> ChatClient:
        name = provider_name or self._default_provider("chat")
        return self._cached(name, "chat", self._build_chat)

    def get_embedding_client(self, provider_name: Optional[str] = None) -> EmbeddingClient:
        name = provider_name or self._default_provider("embedding")
        return self._cached(name, "embedding", self._build_embedding)

    def get_image_client(self, provider_name: Optional[str] = None) -> ImageClient:
        name = provider_name or self._default_provider("image")
        return self._cached(name, "image", self._build_image)

    def _azure_connection(self, provider_cfg: Dict, section: Dict):
        from modelport.llm.azure_openai_provider import DEFAULT_API_VERSION, AzureConnection
        return AzureConnection(
            endpoint=self._setting("endpoint", section, provider_cfg),
            api_key=self._secret("api_key", section, provider_cfg),
            api_version=self._setting("api_version", section, provider_cfg, DEFAULT_API_VERSION),
            use_ad_token=_as_bool(self._setting("use_ad_token", section, provider_cfg, False)),
        )

    def _bedrock_kwargs(self, provider_cfg: Dict, section: Dict) -> Dict[str, Any]:
        return {
            "region": self._setting("region", section, provider_cfg, None),
            "access_key": self._secret("access_key", section, provider_cfg),
            "secret_key": self._secret("secret_key", section, provider_cfg),
        }

    def _openai_kwargs(self, provider_cfg: Dict, section: Dict) -> Dict[str, Any]:
        from modelport.llm.openai_provider import DEFAULT_BASE_URL
        return {
            "api_key": self._secret("api_key", section, provider_cfg),
            "base_url": self._setting("base_url", section, provider_cfg, DEFAULT_BASE_URL),
        }

    def _build_chat(self, ptype: str, provider_cfg: Dict, section: Dict):
        if ptype == "azure_openai":
            from modelport.llm.azure_openai_provider import (
                AzureOpenAiChatClient,
                AzureOpenAiChatOptions,
                default_chat_options,
            )
            return AzureOpenAiChatClient(
                default_options=self._options(
                    AzureOpenAiChatOptions, section, default_chat_options()
                ),
                connection=self._azure_connection(provider_cfg, section),
                skip_first_stream_chunk=_as_bool(section.get("skip_first_stream_chunk", True)),
            )
        if ptype == "openai":
            from modelport.llm.openai_provider import (
                OpenAiChatClient,
                OpenAiChatOptions,
                default_chat_options,
            )
            return OpenAiChatClient(
                default_options=self._options(
                    OpenAiChatOptions, section, default_chat_options()
                ),
                **self._openai_kwargs(provider_cfg, section),
            )
        if ptype == "bedrock":
            from modelport.llm.bedrock_provider import (
                DEFAULT_CHAT_MODEL,
                DEFAULT_TEMPERATURE,
                BedrockTitanChatClient,
                BedrockTitanChatOptions,
            )
            return BedrockTitanChatClient(
                model_id=self._setting("model", section, {}, DEFAULT_CHAT_MODEL),
                default_options=self._options(
                    BedrockTitanChatOptions, section,
                    BedrockTitanChatOptions(temperature=DEFAULT_TEMPERATURE),
                ),
                **self._bedrock_kwargs(provider_cfg, section),
            )
        return None

    def _build_embedding(self, ptype: str, provider_cfg: Dict, section: Dict):
        if ptype == "azure_openai":
            from modelport.llm.embedding_provider import (
                DEFAULT_EMBEDDING_MODEL,
                AzureOpenAiEmbeddingClient,
                AzureOpenAiEmbeddingOptions,
            )
            return AzureOpenAiEmbeddingClient(
                default_options=self._options(
                    AzureOpenAiEmbeddingOptions, section,
                    AzureOpenAiEmbeddingOptions(model=DEFAULT_EMBEDDING_MODEL),
                ),
                connection=self._azure_connection(provider_cfg, section),
            )
        if ptype == "openai":
            from modelport.llm.embedding_provider import (
                DEFAULT_EMBEDDING_MODEL,
                OpenAiEmbeddingClient,
                OpenAiEmbeddingOptions,
            )
            return OpenAiEmbeddingClient(
                default_options=self._options(
                    OpenAiEmbeddingOptions, section,
                    OpenAiEmbeddingOptions(model=DEFAULT_EMBEDDING_MODEL),
                ),
                **self._openai_kwargs(provider_cfg, section),
            )
        if ptype == "bedrock":
            from modelport.llm.bedrock_provider import (
                DEFAULT_EMBEDDING_MODEL,
                BedrockTitanEmbeddingClient,
                TitanInputType,
            )
            return BedrockTitanEmbeddingClient(
                model_id=self._setting("model", section, {}, DEFAULT_EMBEDDING_MODEL),
                input_type=TitanInputType(
                    str(self._setting("input_type", section, {}, "TEXT")).upper()
                ),
                **self._bedrock_kwargs(provider_cfg, section),
            )
        if ptype == "postgresml":
            from modelport.llm.postgresml_provider import (
                PostgresMlEmbeddingClient,
                PostgresMlEmbeddingOptions,
            )
            client = PostgresMlEmbeddingClient(
                default_options=self._options(PostgresMlEmbeddingOptions, section),
                dsn=self._secret("dsn", section, provider_cfg),
            )
            if _as_bool(section.get("initialize", False)):
                client.initialize()
            return client
        return None

    def _build_image(self, ptype: str, provider_cfg: Dict, section: Dict):
        if ptype == "stabilityai":
            from modelport.llm.image_provider import (
                STABILITY_BASE_URL,
                STABILITY_DEFAULT_MODEL,
                StabilityAiImageClient,
                StabilityAiImageOptions,
            )
            return StabilityAiImageClient(
                api_key=self._secret("api_key", section, provider_cfg),
                base_url=self._setting("base_url", section, provider_cfg, STABILITY_BASE_URL),
                default_options=self._options(
                    StabilityAiImageOptions, section,
                    StabilityAiImageOptions(model=STABILITY_DEFAULT_MODEL),
                ),
            )
        if ptype == "openai":
            from modelport.llm.image_provider import (
                OPENAI_DEFAULT_IMAGE_MODEL,
                OpenAiImageClient,
                OpenAiImageOptions,
            )
            return OpenAiImageClient(
                default_options=self._options(
                    OpenAiImageOptions, section,
                    OpenAiImageOptions(model=OPENAI_DEFAULT_IMAGE_MODEL),
                ),
                **self._openai_kwargs(provider_cfg, section),
            )
        return None
