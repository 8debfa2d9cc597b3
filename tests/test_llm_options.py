# CUI // SP-CTI
"""Tests for field-by-field option merging (modelport/llm/options.py)."""

import logging
from dataclasses import dataclass
from typing import List, Optional

import pytest

from modelport.llm.chat_completions import ChatCompletionsRequest
from modelport.llm.errors import InvalidArgumentError, UnsupportedOptionError
from modelport.llm.options import (
    MergeableOptions,
    first_present,
    is_present,
    merge,
    merge_options,
    as_list,
    option,
)
from modelport.llm.provider import ChatOptions


@dataclass
class SampleOptions(MergeableOptions):
    model: Optional[str] = option()
    temperature: Optional[float] = option(normalize=float)
    max_tokens: Optional[int] = option(normalize=int)
    stop: Optional[List[str]] = option(normalize=as_list, alias="stop_sequences")


@dataclass
class NoTopKOptions(MergeableOptions):
    temperature: Optional[float] = option(normalize=float)

    unsupported_fields = ("top_k",)


@dataclass
class ExtendedOptions(MergeableOptions):
    model: Optional[str] = option()
    seed: Optional[int] = option(normalize=int)


# ---------------------------------------------------------------------------
# Presence
# ---------------------------------------------------------------------------

class TestPresence:
    """None and empty collections are absent; zero and False are not."""

    @pytest.mark.parametrize("value", [0, 0.0, False, "x", [1], {"a": 1}])
    def test_present_values(self, value):
        assert is_present(value)

    @pytest.mark.parametrize("value", [None, [], {}, ()])
    def test_absent_values(self, value):
        assert not is_present(value)

    def test_first_present_skips_absent(self):
        assert first_present(None, [], 0, 5) == 0

    def test_first_present_all_absent(self):
        assert first_present(None, {}) is None


# ---------------------------------------------------------------------------
# Two-way merge
# ---------------------------------------------------------------------------

class TestMerge:
    """merge(primary, secondary): primary wins field by field."""

    def test_primary_wins(self):
        merged = merge(SampleOptions(model="gpt-4"), SampleOptions(model="gpt-35-turbo"))
        assert merged.model == "gpt-4"

    def test_falls_back_to_secondary(self):
        merged = merge(SampleOptions(temperature=0.2),
                       SampleOptions(model="gpt-35-turbo", temperature=0.7))
        assert merged.model == "gpt-35-turbo"
        assert merged.temperature == 0.2

    def test_zero_beats_secondary(self):
        merged = merge(SampleOptions(temperature=0.0), SampleOptions(temperature=0.7))
        assert merged.temperature == 0.0

    def test_identity_with_none_secondary(self):
        primary = SampleOptions(model="gpt-4")
        assert merge(primary, None) is primary

    def test_none_primary_returns_secondary(self):
        secondary = SampleOptions(model="gpt-4")
        assert merge(None, secondary) is secondary

    def test_result_has_primary_class(self):
        merged = merge(SampleOptions(), ChatOptions(model="m"))
        assert isinstance(merged, SampleOptions)
        assert merged.model == "m"

    def test_inputs_not_mutated(self):
        primary = SampleOptions(temperature=0.2)
        secondary = SampleOptions(model="m")
        merge(primary, secondary)
        assert primary.model is None
        assert secondary.temperature is None

    def test_merged_with(self):
        merged = SampleOptions(max_tokens=10).merged_with(SampleOptions(model="m"))
        assert (merged.model, merged.max_tokens) == ("m", 10)

    def test_unmerged_fields_kept_from_primary(self):
        messages = [{"role": "user", "content": "Hi"}]
        request = ChatCompletionsRequest(messages=messages, stream=True, temperature=0.1)
        merged = request.merged_with(ChatCompletionsRequest(model="gpt-4", messages=[], stream=False))
        assert merged.messages == messages
        assert merged.messages is not messages
        assert merged.stream is True
        assert (merged.model, merged.temperature) == ("gpt-4", 0.1)


# ---------------------------------------------------------------------------
# Precedence-list merge
# ---------------------------------------------------------------------------

class TestMergeOptions:
    """merge_options(target, *sources) walks sources highest first."""

    def test_first_present_source_wins_per_field(self):
        merged = merge_options(
            SampleOptions,
            SampleOptions(model="native"),
            SampleOptions(model="runtime", temperature=0.1),
            SampleOptions(model="default", temperature=0.9, max_tokens=100),
        )
        assert merged.model == "native"
        assert merged.temperature == 0.1
        assert merged.max_tokens == 100

    def test_none_sources_skipped(self):
        merged = merge_options(SampleOptions, None, SampleOptions(model="m"), None)
        assert merged.model == "m"

    def test_unset_everywhere_stays_absent(self):
        merged = merge_options(SampleOptions, SampleOptions(model="m"))
        assert merged.max_tokens is None

    def test_mapping_source(self):
        merged = merge_options(SampleOptions, {"model": "m", "temperature": 1})
        assert merged.model == "m"
        assert merged.temperature == 1.0
        assert isinstance(merged.temperature, float)

    def test_arbitrary_object_source(self):
        class Loose:
            model = "loose"

        assert merge_options(SampleOptions, Loose()).model == "loose"

    def test_int_normalised_to_float(self):
        merged = merge_options(SampleOptions, SampleOptions(temperature=1))
        assert isinstance(merged.temperature, float)

    def test_float_normalised_to_int(self):
        merged = merge_options(SampleOptions, {"max_tokens": 256.0})
        assert merged.max_tokens == 256
        assert isinstance(merged.max_tokens, int)

    def test_alias_read_from_unified_options(self):
        merged = merge_options(SampleOptions, ChatOptions(stop_sequences=["END"]))
        assert merged.stop == ["END"]

    def test_non_dataclass_target_rejected(self):
        with pytest.raises(InvalidArgumentError):
            merge_options(dict, {"a": 1})


# ---------------------------------------------------------------------------
# Collections are atomic
# ---------------------------------------------------------------------------

class TestCollections:
    """Stop sequences and maps are replaced whole, never combined."""

    def test_non_empty_primary_replaces_secondary(self):
        merged = merge(SampleOptions(stop=["a"]), SampleOptions(stop=["b", "c"]))
        assert merged.stop == ["a"]

    def test_empty_primary_falls_back(self):
        merged = merge(SampleOptions(stop=[]), SampleOptions(stop=["b", "c"]))
        assert merged.stop == ["b", "c"]

    def test_merged_list_is_a_copy(self):
        stop = ["a"]
        merged = merge(SampleOptions(stop=stop), SampleOptions())
        merged.stop.append("b")
        assert stop == ["a"]

    def test_bare_string_is_one_sequence(self):
        assert merge_options(SampleOptions, {"stop": "END"}).stop == ["END"]
        assert merge_options(SampleOptions, ChatOptions(stop_sequences="END")).stop == ["END"]

    @pytest.mark.parametrize("value,expected", [
        ("END", ["END"]),
        (("a", "b"), ["a", "b"]),
        (["a"], ["a"]),
    ])
    def test_as_list(self, value, expected):
        assert as_list(value) == expected


# ---------------------------------------------------------------------------
# Unsupported fields
# ---------------------------------------------------------------------------

class TestUnsupportedFields:
    """A present value for an unsupported field fails the merge."""

    def test_raises_for_present_value(self):
        with pytest.raises(UnsupportedOptionError) as exc_info:
            merge_options(NoTopKOptions, ChatOptions(top_k=5))
        assert exc_info.value.option == "top_k"

    def test_absent_value_is_fine(self):
        merged = merge_options(NoTopKOptions, ChatOptions(temperature=0.3))
        assert merged.temperature == 0.3

    def test_also_raises_as_not_implemented(self):
        with pytest.raises(NotImplementedError):
            merge_options(NoTopKOptions, {"top_k": 1})

    def test_source_refusing_top_k_merges_cleanly(self):
        merged = merge(ChatOptions(), NoTopKOptions(temperature=0.2))
        assert merged.temperature == 0.2
        assert merged.top_k is None


class TestForeignOptions:
    """Options records of another class may only set fields the target holds."""

    def test_unheld_field_raises(self):
        with pytest.raises(UnsupportedOptionError) as exc_info:
            ExtendedOptions(model="m", seed=7).copy_to(SampleOptions)
        assert exc_info.value.option == "seed"

    def test_unheld_field_left_unset_is_fine(self):
        copied = ExtendedOptions(model="m").copy_to(SampleOptions)
        assert copied.model == "m"

    def test_alias_counts_as_held(self):
        copied = ChatOptions(stop_sequences=["x"], max_tokens=3).copy_to(SampleOptions)
        assert (copied.stop, copied.max_tokens) == (["x"], 3)

    def test_mapping_extra_keys_ignored(self):
        assert merge_options(SampleOptions, {"model": "m", "seed": 7}).model == "m"


# ---------------------------------------------------------------------------
# Dict binding
# ---------------------------------------------------------------------------

class TestDictBinding:
    """to_dict / from_dict for config binding and SDK kwargs."""

    def test_to_dict_omits_absent(self):
        assert SampleOptions(model="m", stop=[]).to_dict() == {"model": "m"}

    def test_to_dict_keeps_zero(self):
        assert SampleOptions(temperature=0.0).to_dict() == {"temperature": 0.0}

    def test_from_dict_binds_known_keys(self):
        opts = SampleOptions.from_dict({"model": "m", "max_tokens": "64"})
        assert opts.model == "m"
        assert opts.max_tokens == 64

    def test_from_dict_empty(self):
        assert SampleOptions.from_dict(None) == SampleOptions()

    def test_from_dict_warns_on_unknown_keys(self, caplog):
        with caplog.at_level(logging.WARNING, logger="modelport.llm.options"):
            opts = SampleOptions.from_dict({"model": "m", "bogus": 1})
        assert opts.model == "m"
        assert "bogus" in caplog.text

    def test_from_dict_rejects_unsupported_keys(self):
        with pytest.raises(UnsupportedOptionError):
            NoTopKOptions.from_dict({"top_k": 3})

    def test_copy_to(self):
        copied = ChatOptions(model="m", temperature=0.5).copy_to(SampleOptions)
        assert isinstance(copied, SampleOptions)
        assert (copied.model, copied.temperature) == ("m", 0.5)
