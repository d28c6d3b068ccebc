"""
JSONL event logger for the stream controller.

- One JSON object per line on stdout
- No buffering, no batching
- Controller decisions, adapter lifecycle, configuration reloads and
  metrics all flow through log_event()
"""

from __future__ import annotations

import dataclasses
import json
import sys
from enum import Enum
from typing import Any, Callable, Mapping


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print


def _to_jsonable(value: Any) -> Any:
    # Enums log by value, dataclasses (endpoints, snapshots) as dicts
    if isinstance(value, Enum):
        return value.value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single JSONL event to stdout.

    The caller supplies a fully-formed event dict (ts_ms, event_type,
    controller_id, ...). Never raises: an unserializable event is replaced
    by a LOGGER_SERIALIZATION_ERROR line carrying its repr.
    """
    try:
        line = json.dumps(
            event,
            ensure_ascii=False,
            separators=(",", ":"),
            default=_to_jsonable,
        )
    except (TypeError, ValueError) as e:
        fallback: dict[str, Any] = {
            "ts_ms": event.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)
