from __future__ import annotations

import json
from abc import ABC, abstractmethod
from functools import cached_property
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from panelwatch.chain.types import DomainEvent, LifecycleEvent, PredictionEvent, ProjectionEntry
from panelwatch.errors import ConfigError, DecodeError

EVENT_NAME = "PanelEventAdded"

# First match wins; lookups are on the case-folded, trimmed kind.
STATUS_TABLE: Tuple[Tuple[frozenset, str], ...] = (
    (frozenset({"installed", "ok", "resolved", "maintenancecompleted"}), "green"),
    (frozenset({"warning", "degraded"}), "yellow"),
    (frozenset({"fault", "error", "failed", "critical"}), "red"),
    (frozenset({"systemerror", "oraclemismatch", "invalidsignature"}), "purple"),
    (frozenset({"notinstalled", "pending"}), "grey"),
)
DEFAULT_TAG = "blue"


def classify_status(kind: Optional[str], severity: Optional[str] = None) -> str:
    """
    Map an event kind to its display colour.

    severity is passed through from the event; the table keys on kind only.
    """
    t = (kind or "").strip().casefold()
    if not t:
        return DEFAULT_TAG
    for kinds, tag in STATUS_TABLE:
        if t in kinds:
            return tag
    return DEFAULT_TAG


def render_hash(value: Any) -> str:
    if not value:
        return "0x"
    if isinstance(value, str):
        v = value.lower()
        return v if v.startswith("0x") else "0x" + v
    return "0x" + bytes(value).hex()


def encode_frame(frame: Dict[str, Any]) -> str:
    return json.dumps(frame, ensure_ascii=False, separators=(",", ":"))


def _to_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        v = value[2:] if value[:2].lower() == "0x" else value
        try:
            return bytes.fromhex(v)
        except ValueError as e:
            raise DecodeError(f"log data is not hex: {e}") from e
    raise DecodeError(f"unsupported log data type: {type(value).__name__}")


def _hex(value: Any) -> str:
    if isinstance(value, str):
        v = value.lower()
        return v if v.startswith("0x") else "0x" + v
    return "0x" + bytes(value).hex()


def _opt_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, str):
        return int(value, 16) if value[:2].lower() == "0x" else int(value)
    return int(value)


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


class EventSchema(ABC):
    """
    One ABI layout of PanelEventAdded. A deployment runs exactly one schema.

    Subclasses provide the argument list and the three per-event views:
    the decoded event, its projection entry and its push frame.
    """

    name: str = ""
    arguments: Sequence[Tuple[str, str]] = ()

    @property
    def abi_types(self) -> List[str]:
        return [t for t, _ in self.arguments]

    @property
    def signature(self) -> str:
        return f"{EVENT_NAME}({','.join(self.abi_types)})"

    @cached_property
    def topic(self) -> str:
        return Web3.to_hex(Web3.keccak(text=self.signature))

    def _decode_values(self, raw_log: Mapping[str, Any]) -> Dict[str, Any]:
        topics = raw_log.get("topics") or []
        if topics and _hex(topics[0]) != self.topic:
            raise DecodeError(f"topic mismatch: {_hex(topics[0])}")

        data = _to_bytes(raw_log.get("data"))
        try:
            values = abi_decode(self.abi_types, data)
        except (DecodingError, OverflowError, TypeError, ValueError) as e:
            raise DecodeError(f"abi decode failed: {e}") from e

        out = {name: v for (_, name), v in zip(self.arguments, values)}
        try:
            out["block_number"] = _opt_int(raw_log.get("blockNumber"))
            out["log_index"] = _opt_int(raw_log.get("logIndex"))
        except (TypeError, ValueError) as e:
            raise DecodeError(f"bad log coordinates: {e}") from e
        return out

    @abstractmethod
    def decode(self, raw_log: Mapping[str, Any]) -> DomainEvent:
        raise NotImplementedError

    @abstractmethod
    def derive(self, event: DomainEvent) -> Optional[ProjectionEntry]:
        raise NotImplementedError

    @abstractmethod
    def frame(self, event: DomainEvent) -> Dict[str, Any]:
        raise NotImplementedError


class LifecycleSchema(EventSchema):
    name = "lifecycle"
    arguments = (
        ("string", "panelId"),
        ("string", "eventType"),
        ("string", "faultType"),
        ("string", "faultSeverity"),
        ("string", "actionTaken"),
        ("bytes32", "eventHash"),
        ("address", "validatedBy"),
        ("uint256", "timestamp"),
    )

    def decode(self, raw_log: Mapping[str, Any]) -> LifecycleEvent:
        v = self._decode_values(raw_log)
        return LifecycleEvent(
            panel_id=_text(v.get("panelId")),
            event_type=_text(v.get("eventType")),
            fault_type=_text(v.get("faultType")),
            fault_severity=_text(v.get("faultSeverity")),
            action_taken=_text(v.get("actionTaken")),
            event_hash=render_hash(v.get("eventHash")),
            validated_by=_text(v.get("validatedBy")),
            timestamp=int(v.get("timestamp") or 0),
            block_number=v.get("block_number"),
            log_index=v.get("log_index"),
        )

    def derive(self, event: LifecycleEvent) -> Optional[ProjectionEntry]:
        if not event.panel_id.strip() or not event.event_type.strip():
            return None
        return ProjectionEntry(
            tag=classify_status(event.event_type, event.fault_severity),
            status=event.event_type,
            fault_severity=event.fault_severity or None,
            timestamp=str(event.timestamp),
            block_number=event.block_number,
        )

    def frame(self, event: LifecycleEvent) -> Dict[str, Any]:
        return {
            "panelId": event.panel_id,
            "eventType": event.event_type,
            "faultType": event.fault_type,
            "faultSeverity": event.fault_severity,
            "actionTaken": event.action_taken,
            "eventHash": event.event_hash,
            "validatedBy": event.validated_by,
            "timestamp": str(event.timestamp),
        }


class PredictionSchema(EventSchema):
    name = "prediction"
    arguments = (
        ("string", "panelId"),
        ("bool", "ok"),
        ("string", "color"),
        ("string", "status"),
        ("int256", "prediction"),
        ("string", "reason"),
        ("uint256", "timestamp"),
    )

    def decode(self, raw_log: Mapping[str, Any]) -> PredictionEvent:
        v = self._decode_values(raw_log)
        return PredictionEvent(
            panel_id=_text(v.get("panelId")),
            ok=bool(v.get("ok")),
            color=_text(v.get("color")),
            status=_text(v.get("status")),
            prediction=int(v.get("prediction") or 0),
            reason=_text(v.get("reason")),
            timestamp=int(v.get("timestamp") or 0),
            block_number=v.get("block_number"),
            log_index=v.get("log_index"),
        )

    def derive(self, event: PredictionEvent) -> Optional[ProjectionEntry]:
        if not event.panel_id.strip():
            return None
        return ProjectionEntry(
            tag=event.color.strip() or DEFAULT_TAG,
            status=event.status.strip() or "Unknown",
            ok=event.ok,
            prediction=str(event.prediction),
            reason=event.reason,
            timestamp=str(event.timestamp),
            block_number=event.block_number,
        )

    def frame(self, event: PredictionEvent) -> Dict[str, Any]:
        return {
            "panelId": event.panel_id,
            "color": event.color.strip() or DEFAULT_TAG,
            "status": event.status.strip() or "Unknown",
            "ok": event.ok,
            "prediction": str(event.prediction),
            "reason": event.reason,
            "timestamp": str(event.timestamp),
        }


SCHEMAS: Dict[str, EventSchema] = {
    LifecycleSchema.name: LifecycleSchema(),
    PredictionSchema.name: PredictionSchema(),
}


def get_schema(name: str) -> EventSchema:
    schema = SCHEMAS.get((name or "").strip().lower())
    if schema is None:
        raise ConfigError(f"unknown event schema {name!r}; expected one of {sorted(SCHEMAS)}")
    return schema
