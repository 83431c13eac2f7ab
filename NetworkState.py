from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

from Edge import Edge, edge_key
from Node import Node
from SimOptions import ProtocolType
from Transfer import Transfer


class SimulationStage(Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


class TglStage(Enum):
    PUSH = "push"       # leaf -> relay
    GOSSIP = "gossip"   # relay -> relay
    PULL = "pull"       # relay -> leaf

    def next(self) -> "TglStage":
        order = [TglStage.PUSH, TglStage.GOSSIP, TglStage.PULL]
        return order[(order.index(self) + 1) % len(order)]


class TerminationReason(Enum):
    FULL_COVERAGE = "full_coverage"
    STAGNATION = "stagnation"
    MAX_ROUNDS = "max_rounds"


def compute_coverage(nodes: Sequence[Node]) -> float:
    """
    Percentage of nodes that left the idle state.
    """
    if len(nodes) == 0:
        return 0.0
    with_data = sum(1 for cur_node in nodes if cur_node.has_data())
    return with_data / len(nodes) * 100


@dataclass(frozen=True)
class NetworkState:
    """
    Snapshot of one protocol run. Never changed in place, every step returns a new snapshot.
    """

    nodes: Tuple[Node, ...]
    edges: Tuple[Edge, ...]
    transfers: Tuple[Transfer, ...]
    round: int
    coverage: float
    protocol: ProtocolType
    stage: SimulationStage
    source_node_id: Optional[str] = None
    total_messages_sent: int = 0
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    is_complete: bool = False

    tgl_stage: TglStage = TglStage.PUSH
    cycle_messages: int = 0
    last_messages: int = 0
    round_messages: int = 0
    redundant_contacts: int = 0
    next_transfer_id: int = 0
    termination: Optional[TerminationReason] = None

    def replace(self, **changes) -> "NetworkState":
        return dataclasses.replace(self, **changes)

    def node_index(self) -> Dict[str, Node]:
        return {cur_node.id: cur_node for cur_node in self.nodes}

    def get_node(self, node_id: str) -> Optional[Node]:
        for cur_node in self.nodes:
            if cur_node.id == node_id:
                return cur_node
        return None

    def edge_index(self) -> Dict[Tuple[str, str], Edge]:
        return {cur_edge.key: cur_edge for cur_edge in self.edges}

    def get_edge(self, node_id_1: str, node_id_2: str) -> Optional[Edge]:
        return self.edge_index().get(edge_key(node_id_1, node_id_2))

    def count_with_data(self) -> int:
        return sum(1 for cur_node in self.nodes if cur_node.has_data())

    def relays(self):
        return [cur_node for cur_node in self.nodes if cur_node.is_relay]

    def leaves(self):
        return [cur_node for cur_node in self.nodes if not cur_node.is_relay]

    @property
    def is_stagnated(self) -> bool:
        return self.is_complete and self.coverage < 100

    @property
    def completion_time(self) -> float:
        if self.start_time is None or self.end_time is None:
            return 0.0
        return self.end_time - self.start_time


def empty_state(protocol: ProtocolType, stage: SimulationStage = SimulationStage.IDLE) -> NetworkState:
    """
    Placeholder before a topology is built, or after building it failed (stage ERROR).
    """
    return NetworkState(nodes=(), edges=(), transfers=(), round=0, coverage=0.0, protocol=protocol,
                        stage=stage, is_complete=stage is SimulationStage.ERROR)
