"""Relationship graph over a product's entities."""

from __future__ import annotations

from collections.abc import Iterable

from schemasync.models import Cardinality, Entity
from schemasync.responses import (
    GraphEdge,
    GraphNode,
    GraphStats,
    RelationshipGraph,
)


def build_graph(entities: Iterable[Entity]) -> RelationshipGraph:
    """Build ``{nodes, edges}`` for the given entities.

    Every explicit relationship becomes an edge. Every reference field
    without an explicit relationship on the same (target, field) pair gets
    an implicit edge, so a bare foreign key still shows up.
    """
    entities = list(entities)
    nodes = [
        GraphNode(
            id=entity.name,
            label=entity.name,
            weight=len(entity.fields),
            description=entity.description,
        )
        for entity in entities
    ]

    edges: list[GraphEdge] = []
    for entity in entities:
        seen: set[tuple[str, str]] = set()
        for rel in entity.relationships:
            edges.append(
                GraphEdge(
                    source=entity.name,
                    target=rel.target,
                    label=rel.field,
                    cardinality=rel.cardinality,
                )
            )
            seen.add((rel.target, rel.field))

        for fld in entity.reference_fields():
            if (fld.reference, fld.name) in seen:
                continue
            if fld.is_list:
                cardinality = Cardinality.ONE_TO_MANY
            else:
                cardinality = Cardinality.ONE_TO_ONE
            edges.append(
                GraphEdge(
                    source=entity.name,
                    target=fld.reference,
                    label=fld.name,
                    cardinality=cardinality.value,
                    implicit=True,
                )
            )
            seen.add((fld.reference, fld.name))

    return RelationshipGraph(
        nodes=nodes,
        edges=edges,
        stats=GraphStats(total_nodes=len(nodes), total_edges=len(edges)),
    )
