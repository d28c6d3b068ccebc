# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from typing import Any

import pytest

from observability import logger, metrics
from player.endpoints import StreamEndpoint
from player.enums.endpoint_role import EndpointRole
from player.enums.status import ConnectionStatus


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    lines: list[str] = []
    # Patch the explicit output sink used by logger
    monkeypatch.setattr(logger, "_print", lines.append)
    return lines


def test_log_event_emits_valid_jsonl(captured: list[str]) -> None:
    """
    - log_event emits exactly one JSONL line
    - payload is serialized as-is
    - output sink is patchable
    """
    payload: dict[str, Any] = {
        "event_type": "TEST",
        "value": 123,
    }

    logger.log_event(payload)

    assert len(captured) == 1
    assert json.loads(captured[0]) == payload


def test_enums_and_dataclasses_are_serialized(captured: list[str]) -> None:
    logger.log_event({
        "event_type": "TEST",
        "status": ConnectionStatus.CONNECTING,
        "endpoint": StreamEndpoint("https://radio.example/", EndpointRole.PRIMARY),
    })

    decoded = json.loads(captured[0])
    assert decoded["status"] == "connecting"
    assert decoded["endpoint"] == {"url": "https://radio.example/", "role": "primary"}


def test_unserializable_event_never_raises(captured: list[str]) -> None:
    logger.log_event({"ts_ms": 7, "event_type": "TEST", "bad": object()})

    decoded = json.loads(captured[0])
    assert decoded["event_type"] == "LOGGER_SERIALIZATION_ERROR"
    assert decoded["ts_ms"] == 7


def test_timed_emits_one_metric_even_on_error(captured: list[str]) -> None:
    with pytest.raises(RuntimeError):
        with metrics.timed("stream_connect_attempt", controller_id="ctl_1"):
            raise RuntimeError("boom")

    [line] = captured
    decoded = json.loads(line)
    assert decoded["event_type"] == "METRIC_TIMER"
    assert decoded["metric"] == "stream_connect_attempt"
    assert decoded["controller_id"] == "ctl_1"
    assert decoded["outcome"] == "error"
    assert decoded["value_ms"] >= 0
