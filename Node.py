from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple


class NodeState(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    SENDING = "sending"
    RECEIVING = "receiving"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Position3D:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def as_tuple(self):
        return self.x, self.y, self.z


@dataclass(frozen=True)
class Node:
    """
    A participant of the network. Position is layout only, it has no influence on propagation.
    Nodes are immutable, a state change produces a new node inside a new snapshot.
    """

    id: str
    position: Position3D = field(default_factory=Position3D)
    state: NodeState = NodeState.IDLE
    neighbors: Tuple[str, ...] = ()
    is_relay: bool = False
    is_malicious: bool = False
    received_at_round: Optional[int] = None

    def has_data(self) -> bool:
        return self.state is not NodeState.IDLE

    def is_idle(self) -> bool:
        return self.state is NodeState.IDLE

    def activated(self, at_round: int) -> "Node":
        return replace(self, state=NodeState.ACTIVE, received_at_round=at_round)
