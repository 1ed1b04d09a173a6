"""Custom SQLAlchemy types used by the persistence layer."""
from __future__ import annotations

from typing import Iterable, List, Optional

from pgvector.sqlalchemy import Vector
from sqlalchemy.types import JSON, Float, TypeDecorator


class EmbeddingVector(TypeDecorator[List[float]]):
    """Embedding column: pgvector ``vector`` on PostgreSQL, JSON elsewhere (SQLite tests).

    ``cosine_distance`` renders the pgvector ``<=>`` operator and is only
    meaningful on PostgreSQL.
    """

    cache_ok = True
    impl = JSON

    class comparator_factory(TypeDecorator.Comparator):
        def cosine_distance(self, other):
            return self.op("<=>", return_type=Float)(other)

    def __init__(self, dimension: Optional[int] = None) -> None:
        super().__init__()
        self.dimension = dimension

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(Vector(self.dimension))
        return dialect.type_descriptor(JSON(none_as_null=True))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, Iterable):
            raise TypeError(f"EmbeddingVector expects an iterable of floats, got {type(value)!r}")
        vector = [float(v) for v in value]
        if self.dimension and len(vector) != self.dimension:
            raise ValueError(f"Embedding dimension mismatch: expected {self.dimension}, got {len(vector)}")
        return vector

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if hasattr(value, "tolist"):
            value = value.tolist()
        return [float(v) for v in value]

    def copy(self, **kwargs):
        return EmbeddingVector(dimension=self.dimension)
