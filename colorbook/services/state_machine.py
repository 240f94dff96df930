from __future__ import annotations

from typing import Any, Optional

JOB_STATES = {
    "created",
    "polling",
    "completed",
    "failed",
    "cancelled",
    "timed_out",
}

TERMINAL_STATES = {"completed", "failed", "cancelled", "timed_out"}

ALLOWED_TRANSITIONS = {
    "created": ["polling", "failed", "cancelled"],
    "polling": ["polling", "completed", "failed", "timed_out", "cancelled"],
    "completed": [],
    "failed": [],
    "cancelled": [],
    "timed_out": [],
}

# Field a result must carry, non-empty, before a job may complete.
RESULT_KEYS = {
    "theme_generation": "items",
    "content_generation": "text",
    "translation": "translations",
    "text_to_image": "url",
    "image_to_image": "url",
    "colorization": "url",
}


def ensure_transition(current: str, target: str) -> None:
    if current not in JOB_STATES:
        raise ValueError(f"Unknown state: {current}")
    if target not in JOB_STATES:
        raise ValueError(f"Unknown target state: {target}")

    allowed = ALLOWED_TRANSITIONS.get(current, [])
    if target not in allowed:
        raise ValueError(f"Invalid transition: {current} -> {target}")


def is_terminal(state: str) -> bool:
    return state in TERMINAL_STATES


def normalize_progress(raw: Any) -> Optional[int]:
    """Map a provider progress value onto an integer percentage.

    Anything <= 1 is read as a fraction, so ``1`` and ``"1.00"`` mean 100%.
    Returns None when the provider reported nothing usable.
    """
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(str(raw).strip().rstrip("%"))
    except ValueError:
        return None
    if value != value:  # NaN
        return None
    if value <= 1:
        value *= 100
    return max(0, min(100, int(round(value))))


def has_usable_result(job_type: str, result: Optional[dict]) -> bool:
    if not isinstance(result, dict):
        return False
    key = RESULT_KEYS.get(job_type)
    if key is None:
        return bool(result)
    value = result.get(key)
    if isinstance(value, str):
        return bool(value.strip())
    return bool(value)
