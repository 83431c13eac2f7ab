from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import List, Optional

import networkx as nx
import numpy as np

from NetworkState import NetworkState
from SimOptions import ProtocolType
from Topology import to_graph

MAX_SERIES_LENGTH = 500
DEFAULT_TAKEAWAY_TEMPLATE = "TGL achieved {percentFewerMessages}% fewer messages in {roundsDelta} rounds"


class Serializable:
    def to_dict(self):
        return self.__dict__

    @classmethod
    def from_dict(cls, data):
        obj = cls.__new__(cls)  # Create instance without calling __init__
        obj.__dict__.update(data)
        return obj

    def save_json(self, filepath):
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load_json(cls, filepath):
        with open(filepath, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)


@dataclass
class NetworkMetrics:
    protocol: ProtocolType
    total_rounds: int
    total_messages: int
    completion_time: float
    final_coverage: float
    node_count: int
    average_degree: float = 0.0
    peak_messages_per_round: int = 0
    start_timestamp: float = 0.0
    end_timestamp: float = 0.0
    successful: bool = False

    def to_dict(self):
        result = asdict(self)
        result["protocol"] = self.protocol.value
        return result


@dataclass
class ComparisonMetrics:
    flooding: NetworkMetrics
    hierarchical: NetworkMetrics
    message_reduction: float
    round_difference: int
    time_difference: float
    efficiency_improvement: float


@dataclass
class Takeaway:
    percent_fewer_messages: float
    rounds_delta: int
    abs_messages_a: Optional[int] = None
    abs_messages_b: Optional[int] = None


def network_metrics(state: NetworkState, average_degree: float = 0.0,
                    peak_messages_per_round: int = 0) -> NetworkMetrics:
    return NetworkMetrics(protocol=state.protocol,
                          total_rounds=state.round,
                          total_messages=state.total_messages_sent,
                          completion_time=state.completion_time,
                          final_coverage=state.coverage,
                          node_count=len(state.nodes),
                          average_degree=average_degree,
                          peak_messages_per_round=peak_messages_per_round,
                          start_timestamp=state.start_time or 0.0,
                          end_timestamp=state.end_time or 0.0,
                          successful=state.is_complete)


def compare_metrics(flooding: NetworkMetrics, hierarchical: NetworkMetrics) -> Optional[ComparisonMetrics]:
    """
    Reduction of messages, rounds, time and messages*rounds of the hierarchical run
    relative to flooding. Undefined (None) until both runs delivered at least one message.
    """
    if flooding.total_messages <= 0 or hierarchical.total_messages <= 0:
        return None

    message_reduction = (flooding.total_messages - hierarchical.total_messages) / flooding.total_messages * 100

    flooding_cost = flooding.total_messages * flooding.total_rounds
    hierarchical_cost = hierarchical.total_messages * hierarchical.total_rounds
    if flooding_cost > 0:
        efficiency_improvement = (flooding_cost - hierarchical_cost) / flooding_cost * 100
    else:
        efficiency_improvement = 0.0

    return ComparisonMetrics(flooding=flooding,
                             hierarchical=hierarchical,
                             message_reduction=message_reduction,
                             round_difference=flooding.total_rounds - hierarchical.total_rounds,
                             time_difference=flooding.completion_time - hierarchical.completion_time,
                             efficiency_improvement=efficiency_improvement)


def compare_runs(flooding_state: NetworkState, hierarchical_state: NetworkState,
                 average_degree: float = 0.0) -> Optional[ComparisonMetrics]:
    return compare_metrics(network_metrics(flooding_state, average_degree=average_degree),
                           network_metrics(hierarchical_state))


def speed_gain(comparison: Optional[ComparisonMetrics]) -> Optional[float]:
    """Positive when the hierarchical run finished faster."""
    if comparison is None or comparison.flooding.completion_time == 0:
        return None
    return comparison.time_difference / comparison.flooding.completion_time * 100


def compute_takeaway(metrics_a: NetworkMetrics, metrics_b: NetworkMetrics, include_absolutes: bool = False) -> Takeaway:
    """
    Compares run a (usually hierarchical) against run b (usually flooding).
    Positive values mean a needed fewer messages or rounds than b.
    """
    if metrics_b.total_messages > 0:
        percent_fewer = (metrics_b.total_messages - metrics_a.total_messages) / metrics_b.total_messages * 100
    else:
        percent_fewer = 0.0

    takeaway = Takeaway(percent_fewer_messages=round(percent_fewer, 2),
                        rounds_delta=metrics_b.total_rounds - metrics_a.total_rounds)
    if include_absolutes:
        takeaway.abs_messages_a = metrics_a.total_messages
        takeaway.abs_messages_b = metrics_b.total_messages
    return takeaway


def format_takeaway(takeaway: Takeaway, template: str = DEFAULT_TAKEAWAY_TEMPLATE) -> str:
    message = template.replace("{percentFewerMessages}", f"{takeaway.percent_fewer_messages:.2f}")
    message = message.replace("{roundsDelta}", str(abs(takeaway.rounds_delta)))
    for placeholder, value in (("{absMessagesA}", takeaway.abs_messages_a),
                               ("{absMessagesB}", takeaway.abs_messages_b)):
        message = message.replace(placeholder, "N/A" if value is None else str(value))
    return message


def graph_diameter(state: NetworkState) -> Optional[int]:
    """
    Longest shortest path of the topology, None if it is empty or not connected.
    """
    if len(state.nodes) == 0:
        return None
    g = to_graph(state)
    if not nx.is_connected(g):
        return None
    return max(nx.eccentricity(g).values())


class Data(Serializable):
    """
    History of one protocol run, recorded after every advance.
    """

    def __init__(self, protocol: ProtocolType):
        self.protocol = protocol.value
        self.reset()

    def reset(self):
        self.round_history = []
        self.coverage_history = []
        self.messages_history = []
        self.total_messages_history = []
        self.redundant_contacts_history = []
        self.peak_messages_per_round = 0
        self.advances = 0

    def _append(self, series: list, value):
        series.append(value)
        if len(series) > MAX_SERIES_LENGTH:
            del series[0]

    def record(self, state: NetworkState):
        self._append(self.round_history, state.round)
        self._append(self.coverage_history, state.coverage)
        self._append(self.messages_history, state.last_messages)
        self._append(self.total_messages_history, state.total_messages_sent)
        self._append(self.redundant_contacts_history, state.redundant_contacts)
        self.peak_messages_per_round = max(self.peak_messages_per_round, state.round_messages)
        self.advances += 1

    def first_index(self) -> int:
        """Advance index of the oldest value still kept in the series."""
        return self.advances - len(self.coverage_history)

    def mean_messages(self) -> float:
        if len(self.messages_history) == 0:
            return 0.0
        return float(np.mean(self.messages_history))


class SavingsTracker:
    """
    Keeps the best message reduction seen during the current run, it only grows until reset.
    """

    def __init__(self):
        self.max_message_savings = None

    def update(self, comparison: Optional[ComparisonMetrics]) -> Optional[float]:
        if comparison is None:
            return self.max_message_savings
        current = comparison.message_reduction
        if current is not None and not np.isnan(current):
            if self.max_message_savings is None or current > self.max_message_savings:
                self.max_message_savings = current
        return self.max_message_savings

    def reset(self):
        self.max_message_savings = None


@dataclass
class HistoricalMetrics:
    runs: List[NetworkMetrics] = field(default_factory=list)

    def add(self, metrics: NetworkMetrics):
        self.runs.append(metrics)

    @property
    def total_simulations(self) -> int:
        return len(self.runs)

    @property
    def average_messages(self) -> float:
        if len(self.runs) == 0:
            return 0.0
        return float(np.mean([cur_run.total_messages for cur_run in self.runs]))

    @property
    def average_rounds(self) -> float:
        if len(self.runs) == 0:
            return 0.0
        return float(np.mean([cur_run.total_rounds for cur_run in self.runs]))

    @property
    def best_message_count(self) -> int:
        if len(self.runs) == 0:
            return 0
        return min(cur_run.total_messages for cur_run in self.runs)

    @property
    def worst_message_count(self) -> int:
        if len(self.runs) == 0:
            return 0
        return max(cur_run.total_messages for cur_run in self.runs)
