# gremlin_proxy/graph/result_mapper.py
# SPDX-License-Identifier: Apache-2.0
"""
Normalization of raw backend records into canonical Vertex / Edge shapes.

The two dialects decode projection results differently:

- Generic: each record is a mapping (``record["id"]``).
- Managed: each record is an ordered association list of ``(key, value)``
  pairs, kept in wire order, so fields are found by key lookup.

Both mappers share one contract and produce identical canonical output for
records describing the same logical entity.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Sequence

from gremlin_proxy.graph.graph_base import (
    Dialect,
    Edge,
    MappingError,
    Vertex,
    stringify_id,
)


def _property_key(key: Any) -> str:
    # T.id / T.label tokens arrive as enum members
    return getattr(key, "name", None) or str(key)


def _property_values(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class ResultMapper:
    """Base mapper; subclasses only decide how a field is read from a record."""

    dialect: Dialect

    def _field(self, raw: Any, name: str, kind: str) -> Any:
        raise NotImplementedError

    @staticmethod
    def _pairs(raw: Any) -> Iterable[Sequence[Any]]:
        if isinstance(raw, Mapping):
            return raw.items()
        return raw

    def _properties(self, raw: Any, kind: str) -> Dict[str, List[Any]]:
        value = self._field(raw, "properties", kind)
        if value is None:
            return {}
        try:
            return {_property_key(k): _property_values(v) for k, v in self._pairs(value)}
        except (TypeError, ValueError) as e:
            raise MappingError(
                f"{kind} properties have an unexpected shape",
                details={"dialect": self.dialect.value, "type": type(value).__name__},
            ) from e

    def map_vertex(self, raw: Any) -> Vertex:
        native_id = self._field(raw, "id", "vertex")
        return Vertex(
            id=stringify_id(native_id),
            label=self._field(raw, "label", "vertex"),
            properties=self._properties(raw, "vertex"),
            native_id=native_id,
        )

    def map_edge(self, raw: Any) -> Edge:
        return Edge(
            id=stringify_id(self._field(raw, "id", "edge")),
            src=stringify_id(self._field(raw, "from", "edge")),
            dst=stringify_id(self._field(raw, "to", "edge")),
            label=self._field(raw, "label", "edge"),
            properties=self._properties(raw, "edge"),
        )

    def map_vertices(self, raws: Iterable[Any]) -> List[Vertex]:
        return [self.map_vertex(r) for r in raws]

    def map_edges(self, raws: Iterable[Any]) -> List[Edge]:
        return [self.map_edge(r) for r in raws]

    def _missing(self, name: str, kind: str) -> MappingError:
        return MappingError(
            f"{kind} record is missing field '{name}'",
            details={"dialect": self.dialect.value, "field": name, "kind": kind},
        )


class GenericResultMapper(ResultMapper):
    """Records are mappings, as decoded by the generic Gremlin Server client."""

    dialect = Dialect.GENERIC

    def _field(self, raw: Any, name: str, kind: str) -> Any:
        if not isinstance(raw, Mapping) or name not in raw:
            raise self._missing(name, kind)
        return raw[name]


class ManagedResultMapper(ResultMapper):
    """Records are ``(key, value)`` association lists in wire order."""

    dialect = Dialect.MANAGED

    def _field(self, raw: Any, name: str, kind: str) -> Any:
        if isinstance(raw, (str, bytes, Mapping)):
            raise self._missing(name, kind)
        try:
            for key, value in raw:
                if key == name:
                    return value
        except (TypeError, ValueError) as e:
            raise self._missing(name, kind) from e
        raise self._missing(name, kind)


def mapper_for(dialect: Dialect) -> ResultMapper:
    if dialect is Dialect.MANAGED:
        return ManagedResultMapper()
    return GenericResultMapper()


__all__ = [
    "ResultMapper",
    "GenericResultMapper",
    "ManagedResultMapper",
    "mapper_for",
]
