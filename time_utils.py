# time_utils.py
import time
from datetime import datetime, timezone


def epoch_seconds() -> float:
    # все метки времени в jobs — секунды epoch (float)
    return time.time()


def to_iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def age_seconds(created_at: float, now: float) -> float:
    return now - created_at
