from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class TransferState(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Transfer:
    """
    One message delivery in flight between two nodes, advanced by the transfer tracker.
    """

    id: str
    source_id: str
    target_id: str
    edge_id: str
    progress: float = 0.0
    state: TransferState = TransferState.IN_PROGRESS
    start_time: float = 0.0
    end_time: Optional[float] = None
    round: int = 0
    message_id: Optional[str] = None

    def advanced(self, progress: float) -> "Transfer":
        return replace(self, progress=progress)
