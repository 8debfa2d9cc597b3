# CUI // SP-CTI
"""Field-by-field option merging shared by every provider adapter.

Every provider owns a small options dataclass (see the ``*_provider``
modules). Effective options for a call are computed by walking an ordered
list of option sources, highest precedence first, and taking for each
field of the target dataclass the first *present* value:

    request = merge_options(ChatCompletionsRequest, native, runtime, defaults)

Rules:
- ``None`` is the only absent scalar. ``0``, ``0.0`` and ``False`` are
  legitimate values (e.g. presence_penalty=0) and win over lower sources.
- Collections (stop sequences, logit bias, kwargs) are atomic. An empty
  collection counts as absent; a non-empty one is taken whole.
- Sources may be dataclasses, arbitrary objects or plain mappings, and need
  not share the target's class. Missing attributes are absent.
- Normalisation happens here, per target field, via the
  ``normalize`` callable declared in the field metadata.

The merge is an explicit copy over the target's declared fields. A generic
JSON/dict-diff merge is not used: the Azure OpenAI SDK drops
fields when deserialising partially populated JSON documents
(Azure/azure-sdk-for-java#38183), so a structural merge silently loses
options.
"""

import copy
import logging
from collections.abc import Mapping
from dataclasses import asdict, field, fields, is_dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar

from modelport.llm.errors import InvalidArgumentError, UnsupportedOptionError

logger = logging.getLogger("modelport.llm.options")

T = TypeVar("T")

_COLLECTION_TYPES = (list, tuple, set, frozenset, dict)


def option(normalize: Optional[Callable[[Any], Any]] = None, alias: str = ""):
    """Declare an optional option field (default ``None``).

    Args:
        normalize: Applied to the winning value during merge (e.g. ``float``).
        alias: Attribute name to read from sources that use another name
            for the same concept (e.g. unified ``stop_sequences`` vs
            OpenAI ``stop``).
    """
    metadata: Dict[str, Any] = {}
    if normalize is not None:
        metadata["normalize"] = normalize
    if alias:
        metadata["alias"] = alias
    return field(default=None, metadata=metadata)


def not_merged(**kwargs):
    """Declare a field the merge never reads or writes (e.g. the stream flag)."""
    return field(metadata={"merge": False}, **kwargs)


def as_list(value: Any) -> List[Any]:
    """Normalise a sequence option; a bare string is one element, not its characters."""
    if isinstance(value, str):
        return [value]
    return list(value)


def is_present(value: Any) -> bool:
    """Return True if ``value`` counts as set for merge purposes."""
    if value is None:
        return False
    if isinstance(value, _COLLECTION_TYPES) and len(value) == 0:
        return False
    return True


def first_present(*values: Any) -> Any:
    """Return the first present value, or None."""
    for value in values:
        if is_present(value):
            return value
    return None


def _merged_fields(cls_or_obj: Any) -> list:
    """Dataclass fields that take part in merging."""
    return [
        f for f in fields(cls_or_obj)
        if f.init and f.metadata.get("merge") is not False
    ]


def _read(source: Any, name: str) -> Any:
    if isinstance(source, Mapping):
        return source.get(name)
    if is_dataclass(source):
        # Declared fields only; a refused option may be a raising property.
        if name not in {f.name for f in fields(source)}:
            return None
    return getattr(source, name, None)


def _read_field(source: Any, target_field) -> Any:
    """Read ``target_field`` from ``source`` under its name or either alias."""
    names = [target_field.name]
    alias = target_field.metadata.get("alias", "")
    if alias:
        names.append(alias)
    if is_dataclass(source) and not isinstance(source, type):
        names.extend(
            f.name for f in _merged_fields(source)
            if f.metadata.get("alias") == target_field.name
        )
    for name in names:
        value = _read(source, name)
        if is_present(value):
            return value
    return None


def _check_holdable(target_cls: type, sources: List[Any]) -> None:
    """Refuse options sources whose present fields ``target_cls`` cannot hold."""
    held = set()
    for f in _merged_fields(target_cls):
        held.add(f.name)
        if f.metadata.get("alias"):
            held.add(f.metadata["alias"])
    for source in sources:
        if isinstance(source, target_cls) or not isinstance(source, MergeableOptions):
            continue
        for f in _merged_fields(source):
            if f.name in held or f.metadata.get("alias") in held:
                continue
            if is_present(getattr(source, f.name)):
                raise UnsupportedOptionError(
                    "{} has no '{}' option (set on {}).".format(
                        target_cls.__name__, f.name, type(source).__name__
                    ),
                    provider=getattr(target_cls, "provider_name", ""),
                    option=f.name,
                )


def _check_unsupported(target_cls: type, sources: List[Any]) -> None:
    for name in getattr(target_cls, "unsupported_fields", ()):
        for source in sources:
            if isinstance(source, target_cls):
                continue
            if is_present(_read(source, name)):
                raise UnsupportedOptionError(
                    "{} does not support the '{}' option.".format(
                        target_cls.__name__, name
                    ),
                    provider=getattr(target_cls, "provider_name", ""),
                    option=name,
                )


def merge_options(target_cls: Type[T], *sources: Any) -> T:
    """Merge ``sources`` (highest precedence first) into a new ``target_cls``.

    ``None`` sources are skipped. Fields of ``target_cls`` that no source
    sets keep their dataclass default.

    Raises:
        UnsupportedOptionError: if a source sets a field listed in
            ``target_cls.unsupported_fields``, or an options record of
            another class sets a field ``target_cls`` has no place for.
    """
    if not is_dataclass(target_cls):
        raise InvalidArgumentError(
            "merge target must be a dataclass, got {}".format(target_cls)
        )
    present = [s for s in sources if s is not None]
    _check_unsupported(target_cls, present)
    _check_holdable(target_cls, present)

    values: Dict[str, Any] = {}
    for f in _merged_fields(target_cls):
        value = first_present(*(_read_field(source, f) for source in present))
        if value is not None:
            normalize = f.metadata.get("normalize")
            values[f.name] = normalize(value) if normalize else value
    return target_cls(**values)


def merge(primary: Optional[T], secondary: Any) -> Optional[T]:
    """Two-way merge: ``primary`` wins, ``secondary`` fills the gaps.

    ``merge(a, None)`` returns ``a`` itself; ``merge(None, b)`` returns ``b``.
    The result has ``primary``'s class and keeps ``primary``'s unmerged
    fields (e.g. a request's messages and stream flag).
    """
    if secondary is None:
        return primary
    if primary is None:
        return secondary
    merged = merge_options(type(primary), primary, secondary)
    carried = {
        f.name: copy.copy(getattr(primary, f.name))
        for f in fields(primary)
        if f.init and f.metadata.get("merge") is False
    }
    return replace(merged, **carried) if carried else merged


class MergeableOptions:
    """Capability surface shared by every provider options dataclass.

    Subclasses are plain ``@dataclass`` records whose fields are declared
    with :func:`option`. Instances are treated as immutable once handed to
    a client; every operation here returns a new object.
    """

    #: Option names the vendor model family rejects.
    unsupported_fields: Tuple[str, ...] = ()

    def merged_with(self, other: Any):
        """Return ``self`` over ``other``."""
        return merge(self, other)

    def copy_to(self, target_cls: Type[T]) -> T:
        """Copy the fields ``target_cls`` understands into a new instance."""
        return merge_options(target_cls, self)

    def to_dict(self) -> Dict[str, Any]:
        """Return present fields only, keyed by field name."""
        return {k: v for k, v in asdict(self).items() if is_present(v)}

    @classmethod
    def from_dict(cls, data: Optional[Mapping]):
        """Bind a mapping (e.g. a YAML ``options`` section) onto ``cls``.

        Unknown keys are logged and ignored.
        """
        if not data:
            return cls()
        known = {f.name for f in fields(cls) if f.init}
        unsupported = set(cls.unsupported_fields)
        unknown = sorted(set(data) - known - unsupported)
        if unknown:
            logger.warning(
                "Ignoring unknown %s keys: %s", cls.__name__, ", ".join(unknown)
            )
        return merge_options(
            cls, {k: v for k, v in data.items() if k in known or k in unsupported}
        )
