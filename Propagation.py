"""
The propagation engine. Both protocols share one delivery routine and one termination
check, they only differ in who sends to whom.

advance_round moves a flooding run one round forward, advance_stage moves a hierarchical
run one stage (Push, Gossip or Pull) forward. Both are pure: the given snapshot is never
modified and a completed snapshot is returned unchanged.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import numpy as np

from Behavior import DEFAULT_BEHAVIOR, Behavior
from Edge import edge_key
from MathUtils import round_half_up, sample_without_replacement
from NetworkState import NetworkState, SimulationStage, TerminationReason, TglStage, compute_coverage
from Node import Node, NodeState
from Topology import now_ms
from Transfer import Transfer, TransferState

module_logger = logging.getLogger(__name__)

DEFAULT_USEFUL_RATIO = 1 / 3


def select_flooding_targets(sender: Node, nodes_by_id: Dict[str, Node], degree: Optional[int],
                            useful_ratio: float, rng: np.random.Generator) -> List[str]:
    """
    Picks the neighbors a flooding sender contacts this round.
    At most useful_ratio of the contacts are reserved for neighbors that still miss the
    message, the rest goes to neighbors that already hold it.
    :param sender: the sending node
    :param nodes_by_id: current node states, including activations earlier in this round
    :param degree: upper bound of contacts, the neighbor count when None
    :param useful_ratio: share of contacts aimed at idle neighbors
    :param rng: random generator
    :return: distinct neighbor ids, useful picks first
    """
    neighbors = sender.neighbors
    target_count = len(neighbors) if degree is None else min(degree, len(neighbors))
    if target_count <= 0:
        return []

    useful_count = min(target_count, max(1, round_half_up(target_count * useful_ratio)))
    redundant_count = max(0, target_count - useful_count)

    idle = [node_id for node_id in neighbors if nodes_by_id[node_id].is_idle()]
    informed = [node_id for node_id in neighbors if not nodes_by_id[node_id].is_idle()]

    useful = sample_without_replacement(idle, useful_count, rng)
    if len(useful) < useful_count:
        useful += sample_without_replacement(informed, useful_count - len(useful), rng)

    remaining_informed = [node_id for node_id in informed if node_id not in useful]
    remaining_idle = [node_id for node_id in idle if node_id not in useful]
    redundant = sample_without_replacement(remaining_informed, redundant_count, rng)
    if len(redundant) < redundant_count:
        redundant += sample_without_replacement(remaining_idle, redundant_count - len(redundant), rng)

    return useful + redundant


def _deliver(state: NetworkState, deliveries: List[Tuple[str, str]],
             transfer_round: int, now: float):
    """
    Builds the transfers and the refreshed edge tuple for the deliveries of one advance.
    """
    edge_lookup = state.edge_index()
    used = set()
    transfers = list(state.transfers)
    next_transfer_id = state.next_transfer_id
    for source_id, target_id in deliveries:
        cur_edge = edge_lookup[edge_key(source_id, target_id)]
        used.add(cur_edge.key)
        transfers.append(Transfer(id=f"transfer-{next_transfer_id}",
                                  source_id=source_id,
                                  target_id=target_id,
                                  edge_id=cur_edge.edge_id,
                                  progress=0.0,
                                  state=TransferState.IN_PROGRESS,
                                  start_time=now,
                                  round=transfer_round))
        next_transfer_id += 1

    edges = []
    for cur_edge in state.edges:
        if cur_edge.key in used:
            edges.append(cur_edge.used_in(transfer_round))
        elif cur_edge.active:
            edges.append(cur_edge.deactivated())
        else:
            edges.append(cur_edge)
    return tuple(edges), tuple(transfers), next_transfer_id


def _terminate(state: NetworkState, reason: TerminationReason, now: float, logger) -> NetworkState:
    logger.info(f"{state.protocol.value} run complete after round {state.round}: {reason.value}, "
                f"coverage {state.coverage:.1f}%, messages {state.total_messages_sent}")
    return state.replace(stage=SimulationStage.COMPLETED, is_complete=True, end_time=now, termination=reason)


def check_termination(state: NetworkState, messages: int, max_rounds: Optional[int],
                      at_round_boundary: bool = True) -> Optional[TerminationReason]:
    """
    Full coverage always ends a run. Stagnation and the round limit are only judged at
    round boundaries, messages being the new deliveries since the previous boundary.
    """
    if state.coverage >= 100:
        return TerminationReason.FULL_COVERAGE
    if not at_round_boundary:
        return None
    if messages == 0 and state.round > 0:
        return TerminationReason.STAGNATION
    if max_rounds is not None and state.round >= max_rounds:
        return TerminationReason.MAX_ROUNDS
    return None


def advance_round(state: NetworkState, rng: np.random.Generator, degree: Optional[int] = None,
                  useful_ratio: float = DEFAULT_USEFUL_RATIO, behavior: Optional[Behavior] = None,
                  max_rounds: Optional[int] = None, now: Optional[float] = None, logger=None) -> NetworkState:
    """
    One flooding round. Every node that was active when the round started and still has
    an idle neighbor contacts a random subset of its neighbors. Every contact is a message,
    idle neighbors that are hit become active, the others are redundant contacts.
    """
    if state.is_complete:
        return state
    if behavior is None:
        behavior = DEFAULT_BEHAVIOR
    if logger is None:
        logger = module_logger
    if now is None:
        now = now_ms()

    node_order = [cur_node.id for cur_node in state.nodes]
    nodes_by_id = state.node_index()
    new_round = state.round + 1

    senders = [cur_node for cur_node in state.nodes if cur_node.state is NodeState.ACTIVE]
    deliveries = []
    redundant_contacts = 0
    for sender in senders:
        if not behavior.forwards(sender):
            logger.debug(f"{sender.id} drops its messages in round {new_round}")
            continue
        # a node stops sending once all of its neighbors hold the message
        if not any(nodes_by_id[neighbor_id].is_idle() for neighbor_id in sender.neighbors):
            continue
        for target_id in select_flooding_targets(sender, nodes_by_id, degree, useful_ratio, rng):
            target = nodes_by_id[target_id]
            if target.is_idle():
                nodes_by_id[target_id] = target.activated(new_round)
                deliveries.append((sender.id, target_id))
            else:
                redundant_contacts += 1

    nodes = tuple(nodes_by_id[node_id] for node_id in node_order)
    edges, transfers, next_transfer_id = _deliver(state, deliveries, new_round, now)
    messages = len(deliveries) + redundant_contacts

    new_state = state.replace(nodes=nodes,
                              edges=edges,
                              transfers=transfers,
                              round=new_round,
                              coverage=compute_coverage(nodes),
                              stage=SimulationStage.RUNNING,
                              total_messages_sent=state.total_messages_sent + messages,
                              last_messages=messages,
                              round_messages=messages,
                              cycle_messages=len(deliveries),
                              redundant_contacts=state.redundant_contacts + redundant_contacts,
                              next_transfer_id=next_transfer_id)
    logger.debug(f"flooding round {new_round}: {messages} messages, {len(deliveries)} new nodes, "
                 f"{redundant_contacts} redundant contacts, coverage {new_state.coverage:.1f}%")

    reason = check_termination(new_state, len(deliveries), max_rounds)
    if reason is not None:
        return _terminate(new_state, reason, now, logger)
    return new_state


def advance_stage(state: NetworkState, rng: np.random.Generator, push_budget: int, gossip_budget: int,
                  pull_budget: int, behavior: Optional[Behavior] = None, max_rounds: Optional[int] = None,
                  now: Optional[float] = None, logger=None) -> NetworkState:
    """
    One stage of the hierarchical cycle.
    Push: active leaves inform up to push_budget idle relays.
    Gossip: active relays inform up to gossip_budget idle relays.
    Pull: active relays inform up to pull_budget idle leaves, then the round ends.
    """
    if state.is_complete:
        return state
    if behavior is None:
        behavior = DEFAULT_BEHAVIOR
    if logger is None:
        logger = module_logger
    if now is None:
        now = now_ms()

    node_order = [cur_node.id for cur_node in state.nodes]
    nodes_by_id = state.node_index()
    stage = state.tgl_stage

    if stage is TglStage.PUSH:
        senders_are_relays, targets_are_relays, budget, stamp = False, True, push_budget, state.round
    elif stage is TglStage.GOSSIP:
        senders_are_relays, targets_are_relays, budget, stamp = True, True, gossip_budget, state.round
    else:
        senders_are_relays, targets_are_relays, budget, stamp = True, False, pull_budget, state.round + 1

    senders = [cur_node for cur_node in state.nodes
               if cur_node.state is NodeState.ACTIVE and cur_node.is_relay == senders_are_relays]
    deliveries = []
    for sender in senders:
        if not behavior.forwards(sender):
            logger.debug(f"{sender.id} drops its messages in {stage.value} of round {state.round}")
            continue
        candidates = [node_id for node_id in sender.neighbors
                      if nodes_by_id[node_id].is_relay == targets_are_relays and nodes_by_id[node_id].is_idle()]
        for target_id in sample_without_replacement(candidates, budget, rng):
            nodes_by_id[target_id] = nodes_by_id[target_id].activated(stamp)
            deliveries.append((sender.id, target_id))

    nodes = tuple(nodes_by_id[node_id] for node_id in node_order)
    edges, transfers, next_transfer_id = _deliver(state, deliveries, stamp, now)
    messages = len(deliveries)
    cycle_messages = state.cycle_messages + messages
    at_round_boundary = stage is TglStage.PULL

    new_state = state.replace(nodes=nodes,
                              edges=edges,
                              transfers=transfers,
                              round=state.round + 1 if at_round_boundary else state.round,
                              tgl_stage=stage.next(),
                              coverage=compute_coverage(nodes),
                              stage=SimulationStage.RUNNING,
                              total_messages_sent=state.total_messages_sent + messages,
                              last_messages=messages,
                              cycle_messages=cycle_messages,
                              next_transfer_id=next_transfer_id)
    logger.debug(f"hierarchical {stage.value} of round {state.round}: {messages} messages, "
                 f"coverage {new_state.coverage:.1f}%")

    reason = check_termination(new_state, cycle_messages, max_rounds, at_round_boundary=at_round_boundary)
    if at_round_boundary or reason is not None:
        # a round counts every message from its Push to its Pull
        new_state = new_state.replace(round_messages=cycle_messages)
    if at_round_boundary:
        new_state = new_state.replace(cycle_messages=0)
    if reason is not None:
        return _terminate(new_state, reason, now, logger)
    return new_state
