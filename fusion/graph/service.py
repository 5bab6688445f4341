"""Discovery graph — a read-only projection of stored provenance."""

from __future__ import annotations

from fusion.elements.store import ElementStore
from fusion.graph.schema import GraphLink, GraphNode, GraphResponse


async def build_graph(store: ElementStore) -> GraphResponse:
    """One node per element, one parent → child link per `combined_from` entry."""
    elements = await store.list_all()
    nodes = [GraphNode(id=el.id, name=el.name, icon_url=el.icon_url) for el in elements]
    links = [
        GraphLink(source=parent_id, target=el.id)
        for el in elements
        for parent_id in el.combined_from
    ]
    return GraphResponse(nodes=nodes, links=links)
