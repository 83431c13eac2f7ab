from __future__ import annotations

from MathUtils import clamp
from NetworkState import NetworkState
from Transfer import TransferState

IN_FLIGHT_STATES = (TransferState.PENDING, TransferState.IN_PROGRESS)


def tick_transfers(state: NetworkState, delta_ms: float, transfer_duration_ms: float = 1000) -> NetworkState:
    """
    Advances every in progress transfer by delta_ms / transfer_duration_ms.
    Transfers that arrive are dropped from the snapshot, for both protocols.
    :param state: current snapshot
    :param delta_ms: elapsed time since the previous tick
    :param transfer_duration_ms: time a transfer needs from start to arrival
    :return: new snapshot, or the given one if nothing is in flight
    """
    if len(state.transfers) == 0:
        return state

    if transfer_duration_ms <= 0:
        step = 1.0
    else:
        step = delta_ms / transfer_duration_ms

    kept = []
    for cur_transfer in state.transfers:
        if cur_transfer.state is not TransferState.IN_PROGRESS:
            kept.append(cur_transfer)
            continue
        progress = clamp(cur_transfer.progress + step, 0.0, 1.0)
        if progress >= 1.0:
            continue
        kept.append(cur_transfer.advanced(progress))
    return state.replace(transfers=tuple(kept))


def has_transfers_in_flight(state: NetworkState) -> bool:
    return any(cur_transfer.state in IN_FLIGHT_STATES for cur_transfer in state.transfers)


def clear_transfers(state: NetworkState) -> NetworkState:
    if len(state.transfers) == 0:
        return state
    return state.replace(transfers=())
