# CUI // SP-CTI
"""PostgresML embedding adapter.

Embeddings are computed inside PostgreSQL by the ``pgml`` extension
(``pgml.embed(transformer, text, kwargs)``). A whole batch is embedded by
one statement that unnests the input array, so rows come back in input
order.

The adapter needs a DB-API connection. Pass one in, or give a DSN and a
psycopg2 connection is opened lazily.
"""

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from modelport.llm.errors import InvalidArgumentError
from modelport.llm.options import MergeableOptions, merge_options, option
from modelport.llm.provider import (
    Document,
    Embedding,
    EmbeddingClient,
    EmbeddingRequest,
    EmbeddingResponse,
    MetadataMode,
)

logger = logging.getLogger("modelport.llm.postgresml")

DEFAULT_TRANSFORMER_MODEL = "distilbert-base-uncased"


class VectorType(Enum):
    """How ``pgml.embed`` results are typed in SQL and parsed back."""
    PG_ARRAY = ("", None)
    PG_VECTOR = ("::vector", "vector")

    def __init__(self, cast: str, extension: Optional[str]):
        self.cast = cast
        self.extension = extension

    def parse(self, value: Any) -> List[float]:
        """Turn one ``embedding`` column value into a float list."""
        if self is VectorType.PG_VECTOR and isinstance(value, str):
            # pgvector text form: "[0.1,0.2,...]"
            body = value.strip()[1:-1]
            return [float(v) for v in body.split(",")] if body else []
        return [float(v) for v in value]


def _vector_type(value: Any) -> VectorType:
    if isinstance(value, VectorType):
        return value
    try:
        return VectorType[str(value).upper()]
    except KeyError:
        raise InvalidArgumentError(
            "Unknown vector type {!r}; expected one of {}".format(
                value, ", ".join(v.name for v in VectorType)
            ),
            provider="postgresml",
        ) from None


@dataclass
class PostgresMlEmbeddingOptions(MergeableOptions):
    transformer: Optional[str] = option()
    vector_type: Optional[VectorType] = option(normalize=_vector_type)
    kwargs: Optional[Dict[str, Any]] = option(normalize=dict)
    metadata_mode: Optional[MetadataMode] = option(normalize=MetadataMode)

    def kwargs_json(self) -> str:
        return json.dumps(self.kwargs or {})


def default_embedding_options() -> PostgresMlEmbeddingOptions:
    return PostgresMlEmbeddingOptions(
        transformer=DEFAULT_TRANSFORMER_MODEL,
        vector_type=VectorType.PG_ARRAY,
        kwargs={},
        metadata_mode=MetadataMode.EMBED,
    )


def _embedding_column(row: Any) -> Any:
    if isinstance(row, Mapping):
        return row["embedding"]
    return row[0]


class PostgresMlEmbeddingClient(EmbeddingClient):
    """Embedding adapter backed by the PostgresML ``pgml`` extension.

    Args:
        connection: Open DB-API connection (psycopg2 or compatible).
        default_options: Partial defaults; missing fields fall back to
            the built-in transformer, PG_ARRAY, no kwargs and EMBED mode.
        dsn: PostgreSQL URL used to connect lazily when ``connection`` is
            omitted. Defaults to ``POSTGRESML_URL``.
    """

    def __init__(self, connection=None,
                 default_options: Optional[PostgresMlEmbeddingOptions] = None,
                 dsn: str = ""):
        self._connection = connection
        self._dsn = dsn or os.environ.get("POSTGRESML_URL", "")
        self._default_options = merge_options(
            PostgresMlEmbeddingOptions, default_options, default_embedding_options()
        )
        self._dimensions = None

    @property
    def provider_name(self) -> str:
        return "postgresml"

    @property
    def model_id(self) -> str:
        return self._default_options.transformer

    @property
    def default_options(self) -> PostgresMlEmbeddingOptions:
        return self._default_options

    def _get_connection(self):
        """Lazy-open a psycopg2 connection from the DSN."""
        if self._connection is None:
            try:
                import psycopg2
            except ImportError:
                raise ImportError(
                    "psycopg2 is required for PostgresML. "
                    "Install with: pip install psycopg2-binary"
                )
            if not self._dsn:
                raise InvalidArgumentError(
                    "PostgresML connection required. Set POSTGRESML_URL "
                    "or pass connection= / dsn= to constructor.",
                    provider=self.provider_name,
                )
            self._connection = psycopg2.connect(self._dsn)
        return self._connection

    def merge_options(self, request_options: Any = None) -> PostgresMlEmbeddingOptions:
        """Request options over the defaults."""
        if request_options is None:
            return self._default_options
        if not isinstance(request_options, (MergeableOptions, Mapping)):
            raise InvalidArgumentError(
                "Embedding options are not of type PostgresMlEmbeddingOptions: "
                + type(request_options).__name__,
                provider=self.provider_name,
            )
        return merge_options(
            PostgresMlEmbeddingOptions, request_options, self._default_options
        )

    def initialize(self) -> None:
        """Create the extensions the embedding queries rely on."""
        extensions = ["pgml", "hstore"]
        if self._default_options.vector_type.extension:
            extensions.append(self._default_options.vector_type.extension)
        conn = self._get_connection()
        with conn.cursor() as cur:
            for name in extensions:
                cur.execute("CREATE EXTENSION IF NOT EXISTS " + name)
        conn.commit()
        logger.info("PostgresML extensions ready: %s", ", ".join(extensions))

    def embed(self, text: str) -> List[float]:
        options = self._default_options
        sql = "SELECT pgml.embed(%s, %s, %s::JSONB){} AS embedding".format(
            options.vector_type.cast
        )
        conn = self._get_connection()
        with conn.cursor() as cur:
            cur.execute(sql, (options.transformer, text, options.kwargs_json()))
            row = cur.fetchone()
        return options.vector_type.parse(_embedding_column(row))

    def embed_document(self, document: Document) -> List[float]:
        return self.embed(document.formatted_content(self._default_options.metadata_mode))

    def call(self, request: EmbeddingRequest) -> EmbeddingResponse:
        options = self.merge_options(request.options)
        vectors: List[List[float]] = []
        if request.inputs:
            sql = (
                "SELECT pgml.embed(%s, text, %s::JSONB){} AS embedding "
                "FROM (SELECT unnest(%s) AS text) AS texts"
            ).format(options.vector_type.cast)
            logger.debug("PostgresML embedding %d inputs with %s",
                         len(request.inputs), options.transformer)
            conn = self._get_connection()
            with conn.cursor() as cur:
                cur.execute(
                    sql,
                    (options.transformer, options.kwargs_json(), list(request.inputs)),
                )
                rows = cur.fetchall()
            vectors = [options.vector_type.parse(_embedding_column(r)) for r in rows]

        return EmbeddingResponse(
            embeddings=[Embedding(vector=v, index=i) for i, v in enumerate(vectors)],
            metadata={
                "transformer": options.transformer,
                "vector-type": options.vector_type.name,
                "kwargs": options.kwargs_json(),
            },
        )
