"""
Processing option validation.

Client option bags arrive as raw strings (multipart form fields). Nothing here
ever rejects a job: out-of-range numbers are clamped, anything malformed or
absent falls back to the documented default.
"""
import math
import re
from typing import Any, Mapping, Optional

from loguru import logger

from captioner.models.schemas import ProcessingOptions

DEFAULTS = ProcessingOptions()

HEX_COLOR_PATTERN = re.compile(r'^#?([0-9a-fA-F]{6}|[0-9a-fA-F]{3})$')

# Accept the UI's camelCase field names as well as snake_case
KEY_ALIASES = {
    "base_duration_seconds": ("baseDuration", "base_duration", "base_duration_seconds"),
    "per_word_seconds": ("wordDuration", "perWordSeconds", "word_duration", "per_word_seconds"),
    "font_color": ("fontColor", "font_color"),
    "font_weight": ("fontWeight", "font_weight"),
    "font_size_px": ("fontSize", "font_size", "font_size_px"),
    "position": ("position",),
}


def _lookup(raw: Mapping[str, Any], field: str) -> Any:
    for key in KEY_ALIASES[field]:
        value = raw.get(key)
        if value is not None and str(value).strip() != "":
            return value
    return None


def _to_float(value: Any) -> Optional[float]:
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def normalize_hex_color(value: Any) -> Optional[str]:
    """'ec4899' / '#EC4899' / '#f0a' -> '#EC4899' style. None when malformed."""
    if value is None:
        return None
    match = HEX_COLOR_PATTERN.match(str(value).strip())
    if not match:
        return None
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return f"#{digits.upper()}"


def parse_processing_options(raw: Optional[Mapping[str, Any]]) -> ProcessingOptions:
    """Map an unvalidated option bag onto a complete ProcessingOptions record."""
    raw = raw or {}

    base = _to_float(_lookup(raw, "base_duration_seconds"))
    base = DEFAULTS.base_duration_seconds if base is None else _clamp(base, 0.1, 10.0)

    per_word = _to_float(_lookup(raw, "per_word_seconds"))
    per_word = DEFAULTS.per_word_seconds if per_word is None else _clamp(per_word, 0.1, 2.0)

    size = _to_float(_lookup(raw, "font_size_px"))
    size = DEFAULTS.font_size_px if size is None else int(_clamp(round(size), 12, 48))

    color = normalize_hex_color(_lookup(raw, "font_color")) or DEFAULTS.font_color

    weight = str(_lookup(raw, "font_weight") or "").strip().lower()
    if weight not in ("normal", "bold"):
        weight = DEFAULTS.font_weight

    position = str(_lookup(raw, "position") or "").strip().lower()
    if position not in ("top", "center", "bottom"):
        position = DEFAULTS.position

    options = ProcessingOptions(
        base_duration_seconds=base,
        per_word_seconds=per_word,
        font_color=color,
        font_weight=weight,
        font_size_px=size,
        position=position,
    )
    logger.debug(f"Processing options: {options.model_dump()}")
    return options
