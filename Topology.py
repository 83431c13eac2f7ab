"""
Graph construction for both protocols.

Flooding runs on a k-regular ring, the hierarchical protocol on a fully meshed relay
core with leaves attached round robin. Both builders return the initial NetworkState
with a single active source node.
"""
from __future__ import annotations

import math
import time
from typing import Dict, List, Optional, Tuple

import networkx as nx
import numpy as np

from Edge import Edge, edge_key
from MathUtils import sample_without_replacement
from NetworkState import NetworkState, SimulationStage, TglStage, compute_coverage
from Node import Node, Position3D
from SimOptions import ProtocolType

RING_RADIUS = 100.0
RELAY_RADIUS = 40.0
RELAY_HEIGHT = 20.0


class TopologyError(ValueError):
    """Raised for parameters that cannot produce a well formed graph."""


def now_ms() -> float:
    return time.time() * 1000


def ring_positions(amount: int, radius: float, z: float = 0.0) -> List[Position3D]:
    angles = np.linspace(0.0, 2 * np.pi, num=amount, endpoint=False)
    return [Position3D(float(radius * np.cos(angle)), float(radius * np.sin(angle)), z) for angle in angles]


def ring_neighbor_indices(index: int, node_count: int, degree: int) -> List[int]:
    half = degree // 2
    result = []
    for offset in range(1, half + 1):
        result.append((index + offset) % node_count)
        result.append((index - offset) % node_count)
    if degree % 2 == 1:
        result.append((index + half + 1) % node_count)
    return result


def _collect_edges(nodes: List[Node], order: Dict[str, int]) -> Tuple[Edge, ...]:
    """
    One edge per unordered pair, oriented from the lower to the higher construction index.
    """
    edges: Dict[Tuple[str, str], Edge] = {}
    for cur_node in nodes:
        for neighbor_id in cur_node.neighbors:
            key = edge_key(cur_node.id, neighbor_id)
            if key in edges:
                continue
            if order[cur_node.id] < order[neighbor_id]:
                edges[key] = Edge(source_id=cur_node.id, target_id=neighbor_id)
            else:
                edges[key] = Edge(source_id=neighbor_id, target_id=cur_node.id)
    return tuple(edges.values())


def _malicious_amount(pool_size: int, malicious_percentage: float) -> int:
    if pool_size <= 0 or malicious_percentage <= 0:
        return 0
    return min(pool_size, int(math.floor(pool_size * malicious_percentage / 100)))


def build_flooding_topology(node_count: int, degree: int, malicious_percentage: float,
                            rng: np.random.Generator, now: Optional[float] = None) -> NetworkState:
    """
    k-regular ring: node i links to degree//2 successors and as many predecessors,
    odd degrees add one more successor.
    :param node_count: amount of nodes, at least 2
    :param degree: neighbors per node, 2 <= degree <= node_count - 1
    :param malicious_percentage: share of the non source nodes that drop messages
    :param rng: random generator used for the malicious selection
    :param now: start timestamp in ms, the wall clock when omitted
    :return: initial flooding state, node-0 is the active source
    """
    if node_count < 2:
        raise TopologyError(f"node_count must be at least 2, got {node_count}")
    if degree < 2 or degree > node_count - 1:
        raise TopologyError(f"degree must be within [2, {node_count - 1}], got {degree}")

    candidates = list(range(1, node_count))
    amount = _malicious_amount(len(candidates), malicious_percentage)
    malicious = set(sample_without_replacement(candidates, amount, rng))

    positions = ring_positions(node_count, RING_RADIUS)
    nodes = []
    for i in range(node_count):
        neighbors = tuple(f"node-{j}" for j in ring_neighbor_indices(i, node_count, degree))
        nodes.append(Node(id=f"node-{i}", position=positions[i], neighbors=neighbors, is_malicious=i in malicious))

    source = nodes[0].activated(0)
    nodes[0] = source

    order = {cur_node.id: i for i, cur_node in enumerate(nodes)}
    return NetworkState(nodes=tuple(nodes),
                        edges=_collect_edges(nodes, order),
                        transfers=(),
                        round=0,
                        coverage=compute_coverage(nodes),
                        protocol=ProtocolType.FLOODING,
                        stage=SimulationStage.INITIALIZING,
                        source_node_id=source.id,
                        start_time=now_ms() if now is None else now)


def build_hierarchical_topology(relay_count: int, leaf_count: int, push_budget: int, malicious_percentage: float,
                                rng: np.random.Generator, now: Optional[float] = None) -> NetworkState:
    """
    Relays form a complete graph on an inner ring, every leaf is attached to
    min(relay_count, push_budget) relays picked round robin from its own index.
    """
    if relay_count < 1:
        raise TopologyError(f"relay_count must be at least 1, got {relay_count}")
    if leaf_count < 1:
        raise TopologyError(f"leaf_count must be at least 1, got {leaf_count}")
    if push_budget < 1:
        raise TopologyError(f"push_budget must be at least 1, got {push_budget}")

    relay_ids = [f"relay-{i}" for i in range(relay_count)]
    leaf_ids = [f"leaf-{j}" for j in range(leaf_count)]
    neighbors = {relay_id: [other_id for other_id in relay_ids if other_id != relay_id] for relay_id in relay_ids}
    for leaf_id in leaf_ids:
        neighbors[leaf_id] = []
    connections_per_leaf = min(relay_count, push_budget)
    for j, leaf_id in enumerate(leaf_ids):
        for offset in range(connections_per_leaf):
            relay_id = relay_ids[(j + offset) % relay_count]
            neighbors[leaf_id].append(relay_id)
            neighbors[relay_id].append(leaf_id)

    candidates = relay_ids + leaf_ids[1:]
    amount = _malicious_amount(len(candidates), malicious_percentage)
    malicious = set(sample_without_replacement(candidates, amount, rng))

    relay_positions = ring_positions(relay_count, RELAY_RADIUS, RELAY_HEIGHT)
    leaf_positions = ring_positions(leaf_count, RING_RADIUS)
    relays = [Node(id=node_id, position=relay_positions[i], neighbors=tuple(neighbors[node_id]), is_relay=True,
                   is_malicious=node_id in malicious) for i, node_id in enumerate(relay_ids)]
    leaves = [Node(id=node_id, position=leaf_positions[j], neighbors=tuple(neighbors[node_id]),
                   is_malicious=node_id in malicious) for j, node_id in enumerate(leaf_ids)]

    source = leaves[0].activated(0)
    leaves[0] = source
    nodes = relays + leaves

    order = {cur_node.id: i for i, cur_node in enumerate(nodes)}
    return NetworkState(nodes=tuple(nodes),
                        edges=_collect_edges(nodes, order),
                        transfers=(),
                        round=0,
                        coverage=compute_coverage(nodes),
                        protocol=ProtocolType.HIERARCHICAL,
                        stage=SimulationStage.INITIALIZING,
                        source_node_id=source.id,
                        start_time=now_ms() if now is None else now,
                        tgl_stage=TglStage.PUSH)


def to_graph(state: NetworkState) -> nx.Graph:
    """
    Undirected networkx view of a snapshot, node and edge attributes mirror the snapshot.
    """
    g = nx.Graph()
    for cur_node in state.nodes:
        g.add_node(cur_node.id, state=cur_node.state, is_relay=cur_node.is_relay,
                   is_malicious=cur_node.is_malicious, pos=cur_node.position.as_tuple())
    for cur_edge in state.edges:
        g.add_edge(cur_edge.source_id, cur_edge.target_id, active=cur_edge.active, weight=1)
    return g


def reachable_node_count(state: NetworkState) -> int:
    """
    Upper bound for the final number of informed nodes: every node reachable from the
    informed ones along neighbor lists, where only forwarding nodes pass the message on.
    """
    by_id = state.node_index()
    reached = {cur_node.id for cur_node in state.nodes if cur_node.has_data()}
    frontier = [node_id for node_id in reached if not by_id[node_id].is_malicious]
    while len(frontier) > 0:
        cur_node = by_id[frontier.pop()]
        for neighbor_id in cur_node.neighbors:
            if neighbor_id in reached:
                continue
            reached.add(neighbor_id)
            if not by_id[neighbor_id].is_malicious:
                frontier.append(neighbor_id)
    return len(reached)
