"""
Shared fixtures: seeded generators and small helpers to hand craft snapshots.
"""
import dataclasses

import pytest

from MathUtils import make_rng
from NetworkState import NetworkState
from SimOptions import SimOptions, SimOptionsEnum


@pytest.fixture
def rng():
    return make_rng(1234)


@pytest.fixture
def fast_options():
    """Settings for quick headless runs: short delays, no transfer gating."""
    sim_options = SimOptions()
    sim_options.apply({
        SimOptionsEnum.NODE_COUNT: 30,
        SimOptionsEnum.AVERAGE_DEGREE: 4,
        SimOptionsEnum.ROUND_DELAY: 50,
        SimOptionsEnum.SHOW_TRANSFERS: False,
    })
    return sim_options


def with_malicious(state: NetworkState, malicious_ids) -> NetworkState:
    """Copy of state where exactly the given nodes are malicious."""
    nodes = tuple(dataclasses.replace(cur_node, is_malicious=cur_node.id in malicious_ids)
                  for cur_node in state.nodes)
    return state.replace(nodes=nodes)


def run_flooding(state, rng, limit=1000, **kwargs):
    """Advances until complete, returns every snapshot including the first."""
    from Propagation import advance_round

    states = [state]
    while not states[-1].is_complete and len(states) <= limit:
        states.append(advance_round(states[-1], rng, **kwargs))
    return states


def run_hierarchical(state, rng, push_budget=2, gossip_budget=3, pull_budget=3, limit=3000, **kwargs):
    from Propagation import advance_stage

    states = [state]
    while not states[-1].is_complete and len(states) <= limit:
        states.append(advance_stage(states[-1], rng, push_budget, gossip_budget, pull_budget, **kwargs))
    return states
