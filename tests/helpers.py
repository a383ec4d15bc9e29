from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from eth_abi import encode

from panelwatch.chain.decoder import LifecycleSchema, PredictionSchema
from panelwatch.errors import ChainSourceError

VALIDATOR = "0x" + "ab" * 20
HASH = bytes(range(32))


def lifecycle_log(
    panel_id: str = "PANEL-7",
    event_type: str = "fault",
    fault_type: str = "inverter",
    fault_severity: str = "critical",
    action_taken: str = "crew dispatched",
    event_hash: bytes = HASH,
    validated_by: str = VALIDATOR,
    timestamp: int = 1_700_000_000,
    block: int = 101,
    index: int = 0,
) -> Dict[str, Any]:
    schema = LifecycleSchema()
    data = encode(
        schema.abi_types,
        [panel_id, event_type, fault_type, fault_severity, action_taken, event_hash, validated_by, timestamp],
    )
    return {"data": data, "topics": [schema.topic], "blockNumber": block, "logIndex": index}


def prediction_log(
    panel_id: str = "PANEL-9",
    ok: bool = True,
    color: str = "green",
    status: str = "Healthy",
    prediction: int = 87,
    reason: str = "output within band",
    timestamp: int = 1_700_000_500,
    block: int = 101,
    index: int = 0,
) -> Dict[str, Any]:
    schema = PredictionSchema()
    data = encode(schema.abi_types, [panel_id, ok, color, status, prediction, reason, timestamp])
    return {"data": data, "topics": [schema.topic], "blockNumber": block, "logIndex": index}


class FakeSource:
    """In-memory chain: a settable head and a list of logs."""

    def __init__(self, height: int = 100, logs: Optional[List[Dict[str, Any]]] = None) -> None:
        self.height = height
        self.logs: List[Dict[str, Any]] = list(logs or [])
        self.calls: List[tuple] = []
        self.fail_height = False
        self.fail_logs = False

    def block_number(self) -> int:
        if self.fail_height:
            raise ChainSourceError("eth_blockNumber failed: connection refused")
        return self.height

    def get_logs(self, from_block: int, to_block: int) -> List[Dict[str, Any]]:
        self.calls.append((from_block, to_block))
        if self.fail_logs:
            raise ChainSourceError("eth_getLogs failed: 429 too many requests")
        return [l for l in self.logs if from_block <= l["blockNumber"] <= to_block]


class FakeChannel:
    def __init__(self, fail: bool = False, open_: bool = True, delay: float = 0.0) -> None:
        self.fail = fail
        self.open = open_
        self.delay = delay
        self.sent: List[str] = []
        self.closed = False
        self.close_reason: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.open and not self.closed

    async def send(self, text: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionResetError("peer reset")
        self.sent.append(text)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = True
        self.close_reason = reason


