"""Confidence weighting for signal value impacts."""

from __future__ import annotations

CONFIDENCE_MULTIPLIERS = {
    "UNCERTAIN": 0.5,
    "SOMEWHAT_CONFIDENT": 0.7,
    "CONFIDENT": 0.85,
    "VERIFIED": 1.0,
    "NOT_APPLICABLE": 1.0,
}

# Confirmation jumps two levels; dismissal drops two.
_UPGRADES = {
    "UNCERTAIN": "CONFIDENT",
    "SOMEWHAT_CONFIDENT": "VERIFIED",
    "CONFIDENT": "VERIFIED",
}
_DOWNGRADES = {
    "VERIFIED": "SOMEWHAT_CONFIDENT",
    "CONFIDENT": "UNCERTAIN",
    "SOMEWHAT_CONFIDENT": "UNCERTAIN",
}

CHANNEL_DEFAULT_CONFIDENCE = {
    "PROMPTED_DISCLOSURE": "SOMEWHAT_CONFIDENT",
    "TASK_GENERATED": "CONFIDENT",
    "TIME_DECAY": "CONFIDENT",
    "EXTERNAL": "SOMEWHAT_CONFIDENT",
    "ADVISOR": "CONFIDENT",
}


def apply_confidence_weight(amount: float, confidence: str) -> float:
    return amount * CONFIDENCE_MULTIPLIERS.get(confidence, 0.5)


def get_upgraded_confidence(confidence: str) -> str:
    return _UPGRADES.get(confidence, confidence)


def get_downgraded_confidence(confidence: str) -> str:
    return _DOWNGRADES.get(confidence, confidence)


def get_default_confidence_for_channel(channel: str) -> str:
    return CHANNEL_DEFAULT_CONFIDENCE.get(channel, "UNCERTAIN")
