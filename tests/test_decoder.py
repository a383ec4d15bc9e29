from __future__ import annotations

import json

import pytest
from web3 import Web3

from panelwatch.chain.decoder import (
    EventSchema,
    LifecycleSchema,
    PredictionSchema,
    classify_status,
    encode_frame,
    get_schema,
    render_hash,
)
from panelwatch.chain.types import LifecycleEvent, PredictionEvent
from panelwatch.errors import ConfigError, DecodeError

from tests.helpers import HASH, VALIDATOR, lifecycle_log, prediction_log


@pytest.mark.parametrize(
    "kind, tag",
    [
        ("Installed", "green"),
        ("ok", "green"),
        (" Resolved ", "green"),
        ("MaintenanceCompleted", "green"),
        ("WARNING", "yellow"),
        ("degraded", "yellow"),
        ("fault", "red"),
        ("Error", "red"),
        ("failed", "red"),
        ("CRITICAL", "red"),
        ("SystemError", "purple"),
        ("oracleMismatch", "purple"),
        ("InvalidSignature", "purple"),
        ("NotInstalled", "grey"),
        ("pending", "grey"),
        ("unknown_value", "blue"),
        ("", "blue"),
        ("   ", "blue"),
        (None, "blue"),
    ],
)
def test_classify_status(kind, tag):
    assert classify_status(kind) == tag


def test_classify_status_ignores_severity():
    assert classify_status("warning", "critical") == "yellow"
    assert classify_status("installed", None) == "green"


def test_render_hash():
    assert render_hash(None) == "0x"
    assert render_hash(b"") == "0x"
    assert render_hash(HASH) == "0x" + HASH.hex()
    assert render_hash(b"\xAB" * 32) == "0x" + "ab" * 32


def test_signatures_and_topic():
    lc = LifecycleSchema()
    assert lc.signature == "PanelEventAdded(string,string,string,string,string,bytes32,address,uint256)"
    assert lc.topic == Web3.to_hex(Web3.keccak(text=lc.signature))
    assert PredictionSchema().signature == "PanelEventAdded(string,bool,string,string,int256,string,uint256)"


def test_decode_lifecycle_log():
    ev = LifecycleSchema().decode(lifecycle_log(block=104, index=3))
    assert isinstance(ev, LifecycleEvent)
    assert ev.panel_id == "PANEL-7"
    assert ev.event_type == "fault"
    assert ev.fault_type == "inverter"
    assert ev.fault_severity == "critical"
    assert ev.action_taken == "crew dispatched"
    assert ev.event_hash == "0x" + HASH.hex()
    assert len(ev.event_hash) == 66
    assert ev.validated_by.lower() == VALIDATOR
    assert ev.timestamp == 1_700_000_000
    assert ev.block_number == 104
    assert ev.log_index == 3


def test_decode_accepts_hex_string_data_and_block_numbers():
    raw = lifecycle_log()
    raw["data"] = "0x" + raw["data"].hex()
    raw["blockNumber"] = "0x65"
    ev = LifecycleSchema().decode(raw)
    assert ev.panel_id == "PANEL-7"
    assert ev.block_number == 101


def test_decode_rejects_foreign_topic():
    raw = lifecycle_log()
    raw["topics"] = [PredictionSchema().topic]
    with pytest.raises(DecodeError):
        LifecycleSchema().decode(raw)


@pytest.mark.parametrize("data", [b"", b"\x00" * 7, "0xzz"])
def test_decode_rejects_malformed_data(data):
    raw = lifecycle_log()
    raw["data"] = data
    with pytest.raises(DecodeError):
        LifecycleSchema().decode(raw)


def test_lifecycle_frame_shape():
    schema = LifecycleSchema()
    frame = schema.frame(schema.decode(lifecycle_log()))
    assert list(frame) == [
        "panelId",
        "eventType",
        "faultType",
        "faultSeverity",
        "actionTaken",
        "eventHash",
        "validatedBy",
        "timestamp",
    ]
    assert frame["timestamp"] == "1700000000"
    assert json.loads(encode_frame(frame)) == frame


def test_lifecycle_derive():
    schema = LifecycleSchema()
    entry = schema.derive(schema.decode(lifecycle_log()))
    assert entry is not None
    assert entry.tag == "red"
    assert entry.status == "fault"
    assert entry.fault_severity == "critical"
    assert entry.timestamp == "1700000000"


@pytest.mark.parametrize("panel_id, event_type", [("", "fault"), ("  ", "fault"), ("PANEL-1", ""), ("PANEL-1", " ")])
def test_lifecycle_derive_skips_blank_fields(panel_id, event_type):
    schema = LifecycleSchema()
    ev = schema.decode(lifecycle_log(panel_id=panel_id, event_type=event_type))
    assert schema.derive(ev) is None


def test_decode_prediction_log():
    schema = PredictionSchema()
    ev = schema.decode(prediction_log(prediction=-42))
    assert isinstance(ev, PredictionEvent)
    assert ev.ok is True
    assert ev.prediction == -42

    frame = schema.frame(ev)
    assert frame == {
        "panelId": "PANEL-9",
        "color": "green",
        "status": "Healthy",
        "ok": True,
        "prediction": "-42",
        "reason": "output within band",
        "timestamp": "1700000500",
    }


def test_prediction_defaults():
    schema = PredictionSchema()
    ev = schema.decode(prediction_log(color="", status="", ok=False))
    entry = schema.derive(ev)
    assert entry.tag == "blue"
    assert entry.status == "Unknown"
    assert entry.ok is False
    assert schema.frame(ev)["color"] == "blue"


def test_get_schema():
    assert get_schema("lifecycle").name == "lifecycle"
    assert get_schema(" Prediction ").name == "prediction"
    with pytest.raises(ConfigError):
        get_schema("merged")


def test_event_schema_is_abstract():
    with pytest.raises(TypeError):
        EventSchema()
    assert isinstance(get_schema("lifecycle"), EventSchema)
