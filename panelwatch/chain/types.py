from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from pydantic import BaseModel


@dataclass(frozen=True)
class LifecycleEvent:
    """
    Panel lifecycle report: install, fault, maintenance, oracle checks.
    """
    panel_id: str
    event_type: str = ""
    fault_type: str = ""
    fault_severity: str = ""
    action_taken: str = ""
    event_hash: str = "0x"
    validated_by: str = ""
    timestamp: int = 0
    block_number: Optional[int] = None
    log_index: Optional[int] = None


@dataclass(frozen=True)
class PredictionEvent:
    """
    Model verdict for a panel: colour + status text + signed prediction.
    """
    panel_id: str
    ok: bool = False
    color: str = ""
    status: str = ""
    prediction: int = 0
    reason: str = ""
    timestamp: int = 0
    block_number: Optional[int] = None
    log_index: Optional[int] = None


DomainEvent = Union[LifecycleEvent, PredictionEvent]


class ProjectionEntry(BaseModel):
    tag: str = "blue"
    status: str = ""
    fault_severity: Optional[str] = None
    ok: Optional[bool] = None
    prediction: Optional[str] = None
    reason: Optional[str] = None
    timestamp: str = "0"
    block_number: Optional[int] = None
