import threading
import time
from typing import Any


_lock = threading.Lock()
_metrics: dict[str, float] = {
    "webhooks_received": 0.0,
    "webhooks_rejected": 0.0,
    "webhooks_failed": 0.0,
    "users_upserted": 0.0,
    "interviews_created": 0.0,
    "interviews_completed": 0.0,
    "calls_ended": 0.0,
    "call_end_failures": 0.0,
    "calls_reconciled": 0.0,
    "device_enable_failures": 0.0,
    "call_sessions_active": 0.0,
}


def increment_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        _metrics[key] = float(_metrics.get(key, 0.0)) + float(amount)


def set_metric(name: str, value: float) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        _metrics[key] = max(0.0, float(value))


def get_metrics_snapshot(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    with _lock:
        data = dict(_metrics)

    payload: dict[str, Any] = {"generated_at": time.time()}
    payload.update({key: int(value) for key, value in data.items()})

    if extra:
        payload.update(extra)
    return payload
