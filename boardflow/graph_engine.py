"""
Diagram: graph storage for a BoardFlow board.

Elements are nodes and connectors are keyed multi-edges of a networkx
MultiDiGraph (start endpoint -> end endpoint). The graph is arbitrary: it may
hold cycles, self-loops and parallel connectors, all of which the compiler
has to tolerate. Connectors keep their insertion order so that edge
classification is deterministic.
"""

from __future__ import annotations
from itertools import count
from typing import Dict, Iterable, List, Optional

import networkx as nx

from .errors import DiagramError
from .schemas import Connector, DiagramDocument, Element, NO_CAP


class Diagram:
    """Elements plus directed connectors, as drawn on one page."""

    def __init__(self, elements: Iterable[Element] = (), connectors: Iterable[Connector] = ()):
        self.graph: nx.MultiDiGraph = nx.MultiDiGraph()
        self._order = count()
        # Connectors with a free-floating endpoint never reach the graph.
        self.dangling: List[Connector] = []
        for element in elements:
            self.add_element(element)
        for connector in connectors:
            self.add_connector(connector)

    # ─── Node Management ─────────────────────────────────────────

    def add_element(self, element: Element) -> Element:
        if element.id in self.graph.nodes:
            raise DiagramError(f"Duplicate element id '{element.id}'")
        self.graph.add_node(element.id, data=element, order=next(self._order))
        return element

    def add_connector(self, connector: Connector) -> Connector:
        if not connector.attached:
            self.dangling.append(connector)
            return connector
        for endpoint in (connector.start, connector.end):
            if endpoint not in self.graph.nodes:
                raise DiagramError(f"Connector '{connector.id}' references unknown element '{endpoint}'")
        self.graph.add_edge(connector.start, connector.end, key=connector.id, data=connector, order=next(self._order))
        return connector

    def connect(self, start: Element, end: Element, start_cap: str = NO_CAP, end_cap: str = NO_CAP,
                id: Optional[str] = None) -> Connector:
        """Draw a connector between two elements already on the board."""
        connector_id = id or f"connector-{self.graph.number_of_edges() + len(self.dangling) + 1}"
        return self.add_connector(Connector(
            id=connector_id,
            start=start.id,
            end=end.id,
            start_cap=start_cap,
            end_cap=end_cap,
        ))

    # ─── Lookup ──────────────────────────────────────────────────

    def element(self, element_id: str) -> Element:
        try:
            return self.graph.nodes[element_id]["data"]
        except KeyError:
            raise DiagramError(f"Unknown element '{element_id}'") from None

    @property
    def elements(self) -> List[Element]:
        nodes = sorted(self.graph.nodes(data=True), key=lambda item: item[1]["order"])
        return [data["data"] for _, data in nodes]

    @property
    def connectors(self) -> List[Connector]:
        edges = sorted(self.graph.edges(keys=True, data=True), key=lambda item: item[3]["order"])
        return [data["data"] for *_, data in edges] + list(self.dangling)

    def sections(self) -> List[Element]:
        """Top-level sections in page order; each one is a window."""
        return [el for el in self.elements if el.is_section and el.parent is None]

    def attached_connectors(self, element_id: str) -> List[Connector]:
        """Every connector touching the element, oldest first, each listed once."""
        if element_id not in self.graph.nodes:
            raise DiagramError(f"Unknown element '{element_id}'")
        seen: Dict[str, tuple] = {}
        for edges in (self.graph.in_edges(element_id, keys=True, data=True),
                      self.graph.out_edges(element_id, keys=True, data=True)):
            for _, _, key, data in edges:
                seen.setdefault(key, (data["order"], data["data"]))
        return [connector for _, connector in sorted(seen.values(), key=lambda item: item[0])]

    # ─── Export ──────────────────────────────────────────────────

    @classmethod
    def from_document(cls, document: DiagramDocument) -> "Diagram":
        return cls(document.elements, document.connectors)

    def to_document(self) -> DiagramDocument:
        return DiagramDocument(elements=self.elements, connectors=self.connectors)

    @property
    def node_count(self) -> int:
        return self.graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        return self.graph.number_of_edges()
