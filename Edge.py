from dataclasses import dataclass, replace
from typing import Optional, Tuple


def edge_key(node_id_1: str, node_id_2: str) -> Tuple[str, str]:
    """
    Orientation free lookup key of the edge between two nodes.
    """
    if node_id_1 <= node_id_2:
        return node_id_1, node_id_2
    return node_id_2, node_id_1


@dataclass(frozen=True)
class Edge:
    """
    The undirected link between two nodes. Using an edge replaces it by a copy with
    new active and last_used values.
    """

    source_id: str
    target_id: str
    active: bool = False
    weight: Optional[float] = None
    last_used: Optional[int] = None

    @property
    def edge_id(self) -> str:
        return f"{self.source_id}-{self.target_id}"

    @property
    def key(self) -> Tuple[str, str]:
        return edge_key(self.source_id, self.target_id)

    def used_in(self, at_round: int) -> "Edge":
        return replace(self, active=True, last_used=at_round)

    def deactivated(self) -> "Edge":
        return replace(self, active=False)
