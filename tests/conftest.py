#!/usr/bin/env python3
# CUI // SP-CTI
"""Shared pytest fixtures for the modelport test suite.

Vendor SDK clients are replaced by MagicMock fakes and SDK response
objects by SimpleNamespace trees, so no test touches the network.
"""

import io
import json
import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

# Ensure project root is on sys.path
BASE_DIR = Path(__file__).resolve().parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))


# ---------------------------------------------------------------------------
# Chat Completions fakes
# ---------------------------------------------------------------------------
def make_completion(texts=("Hello!",), finish_reason="stop", prompt_filter_results=None,
                    content_filter_results=None, model="gpt-35-turbo"):
    """Build a Chat Completions response shaped like the openai SDK object."""
    choices = [
        SimpleNamespace(
            index=i,
            message=SimpleNamespace(role="assistant", content=text),
            finish_reason=finish_reason,
            content_filter_results=content_filter_results,
        )
        for i, text in enumerate(texts)
    ]
    completion = SimpleNamespace(
        id="chatcmpl-123",
        model=model,
        choices=choices,
        usage=SimpleNamespace(prompt_tokens=9, completion_tokens=12, total_tokens=21),
    )
    if prompt_filter_results is not None:
        completion.prompt_filter_results = prompt_filter_results
    return completion


def make_chunk(content=None, finish_reason=None, choices=True):
    """Build one streamed chunk; ``choices=False`` gives an empty choice list."""
    chunk_choices = []
    if choices:
        chunk_choices.append(SimpleNamespace(
            index=0,
            delta=SimpleNamespace(role=None, content=content),
            finish_reason=finish_reason,
        ))
    return SimpleNamespace(id="chatcmpl-123", model="gpt-35-turbo", choices=chunk_choices)


class FakeStream:
    """Iterable vendor stream that records how far it was consumed."""

    def __init__(self, chunks):
        self._chunks = list(chunks)
        self.consumed = 0
        self.closed = False

    def __iter__(self):
        for chunk in self._chunks:
            self.consumed += 1
            yield chunk

    def close(self):
        self.closed = True


@pytest.fixture
def sdk_client():
    """MagicMock standing in for an openai / AzureOpenAI client."""
    client = MagicMock()
    client.chat.completions.create.return_value = make_completion()
    return client


# ---------------------------------------------------------------------------
# Bedrock fakes
# ---------------------------------------------------------------------------
def bedrock_body(payload):
    """Wrap ``payload`` the way boto3 returns an invoke_model body."""
    return {"body": io.BytesIO(json.dumps(payload).encode("utf-8"))}


def bedrock_event(payload):
    return {"chunk": {"bytes": json.dumps(payload).encode("utf-8")}}


@pytest.fixture
def bedrock_client():
    """MagicMock standing in for a boto3 bedrock-runtime client."""
    return MagicMock()
