"""Annotation keys and the closed set of tokens the webhook recognizes.

Values are compared case-insensitively (and ignoring surrounding whitespace); keys are exact.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Mapping, Optional

ANNOTATION_PREFIX = "adjust-tz.k8s.example.io"
INJECT_KEY = f"{ANNOTATION_PREFIX}/inject"
STATUS_KEY = f"{ANNOTATION_PREFIX}/status"

STATUS_INJECTED = "injected"
OPT_OUT_TOKENS: FrozenSet[str] = frozenset({"n", "no", "false", "off"})


def _norm(value: Optional[str]) -> str:
    return str(value or "").strip().lower()


def is_injected(annotations: Optional[Mapping[str, str]]) -> bool:
    """True when the status annotation marks the pod as already processed."""
    return _norm((annotations or {}).get(STATUS_KEY)) == STATUS_INJECTED


def is_opted_out(annotations: Optional[Mapping[str, str]]) -> bool:
    """True when the inject annotation carries one of the negative tokens."""
    return _norm((annotations or {}).get(INJECT_KEY)) in OPT_OUT_TOKENS


def status_annotations() -> Dict[str, str]:
    return {STATUS_KEY: STATUS_INJECTED}
