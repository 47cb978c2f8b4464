#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Parse free-text plant sizes ("30-50 cm", "Height: 1 to 3 feet", "bis 50 cm")
into integer centimetre / inch ranges.
"""

import math
import re
from typing import Any, Dict, Optional, Tuple

DIMENSION_FIELDS = (
    "height_min_cm", "height_max_cm", "spread_min_cm", "spread_max_cm",
    "height_min_inches", "height_max_inches", "spread_min_inches", "spread_max_inches",
)

_NUM = r"(\d+(?:[.,]\d+)?)"
# longest alternatives first: "mm" before "m", "inches" before "in"
_UNIT = r"(mm|cm|dm|meters|meter|m|inches|inch|in|feet|foot|ft|'|\")?"
RANGE_RE = re.compile(_NUM + r"\s*(?:[-–—]|to)\s*" + _NUM + r"\s*" + _UNIT)
SINGLE_RE = re.compile(_NUM + r"\s*" + _UNIT)
UPTO_RE = re.compile(r"bis\s*" + _NUM + r"\s*(mm|cm|dm|m)?")
ABOUT_RE = re.compile(r"(?:ca\.|etwa)\s*" + _NUM + r"\s*(mm|cm|dm|m)?")

def _round(x: float) -> int:
    # half-up, not banker's rounding
    return int(math.floor(x + 0.5))

def _num(s: str) -> float:
    return float(s.replace(",", "."))

def to_cm(value: float, unit: Optional[str]) -> int:
    u = (unit or "cm").lower()
    if u in ("m", "meter", "meters"):
        return _round(value * 100)
    if u == "dm":
        return _round(value * 10)
    if u == "mm":
        return _round(value / 10)
    if u in ("ft", "feet", "foot", "'"):
        return _round(value * 30.48)
    if u in ("in", "inch", "inches", '"'):
        return _round(value * 2.54)
    return _round(value)

def _detect_unit(s: str) -> str:
    if "meter" in s or " m " in s or " m." in s:
        return "m"
    if "feet" in s or "ft" in s or "'" in s:
        return "ft"
    if "inch" in s or '"' in s:
        return "inches"
    return "cm"

def cm_to_inches(cm: float) -> int:
    return _round(cm / 2.54)

def inches_to_cm(inches: float) -> int:
    return _round(inches * 2.54)

def parse_dimension(text: Optional[str]) -> Optional[Tuple[int, int]]:
    """Return (min_cm, max_cm) or None when no number is found."""
    if not text or not isinstance(text, str):
        return None
    s = text.lower().strip()

    if "bis" in s:
        m = UPTO_RE.search(s)
        if m:
            return 0, to_cm(_num(m.group(1)), m.group(2))

    if "ca." in s or "etwa" in s:
        m = ABOUT_RE.search(s)
        if m:
            cm = to_cm(_num(m.group(1)), m.group(2))
            return _round(cm * 0.8), _round(cm * 1.2)

    m = RANGE_RE.search(s)
    if m:
        unit = m.group(3) or _detect_unit(s)
        return to_cm(_num(m.group(1)), unit), to_cm(_num(m.group(2)), unit)

    m = SINGLE_RE.search(s)
    if m:
        cm = to_cm(_num(m.group(1)), m.group(2) or _detect_unit(s))
        return cm, cm
    return None

def coerce_cm(value: Any, end: str = "min") -> Optional[int]:
    """Integer cm from a number or a size string ("45.5", "30 cm", "30-60"); None when unreadable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _round(value) if math.isfinite(value) and value >= 0 else None
    if isinstance(value, str):
        rng = parse_dimension(value)
        if rng:
            return rng[1] if end == "max" else rng[0]
    return None

def _range_from_obj(obj: Any, unit: Optional[str] = None) -> Optional[Tuple[int, int]]:
    """{"min": .., "max": ..} (metres unless a unit is given) or a size string."""
    if isinstance(obj, str):
        return parse_dimension(obj)
    if not isinstance(obj, dict):
        return None
    lo = obj.get("min", obj.get("min_value"))
    hi = obj.get("max", obj.get("max_value"))
    unit = obj.get("unit") or unit or "m"
    try:
        lo_cm = to_cm(float(lo), unit) if lo not in (None, "") else None
        hi_cm = to_cm(float(hi), unit) if hi not in (None, "") else None
    except (TypeError, ValueError):
        return None
    if lo_cm is None and hi_cm is None:
        return None
    return (lo_cm if lo_cm is not None else hi_cm), (hi_cm if hi_cm is not None else lo_cm)

def _put(out: Dict[str, Optional[int]], what: str, rng: Optional[Tuple[int, int]]):
    if not rng or out.get(f"{what}_min_cm") is not None:
        return
    lo, hi = rng
    out[f"{what}_min_cm"] = lo
    out[f"{what}_max_cm"] = hi
    out[f"{what}_min_inches"] = cm_to_inches(lo)
    out[f"{what}_max_inches"] = cm_to_inches(hi)

def parse_plant_dimensions(data: Dict[str, Any]) -> Dict[str, Optional[int]]:
    """
    Collect height/spread from whatever the record carries, first hit wins:
      - numeric *_cm fields already present
      - a "dimension" object {"height": {...}, "spread": {...}} or strings
      - loose "height" / "spread" / "width" strings (scraped data)
    """
    out: Dict[str, Optional[int]] = {k: None for k in DIMENSION_FIELDS}

    for what in ("height", "spread"):
        lo, hi = data.get(f"{what}_min_cm"), data.get(f"{what}_max_cm")
        if lo and hi:
            _put(out, what, (int(lo), int(hi)))

    dim = data.get("dimension")
    if isinstance(dim, dict):
        _put(out, "height", _range_from_obj(dim.get("height")))
        _put(out, "spread", _range_from_obj(dim.get("spread") or dim.get("width")))

    _put(out, "height", parse_dimension(data.get("height")))
    _put(out, "spread", parse_dimension(data.get("spread") or data.get("width")))
    return out

def dimensions_from_perenual(details: Dict[str, Any]) -> Dict[str, int]:
    """
    Perenual ships sizes either as
      "dimensions": {"type": "Height", "min_value": 1, "max_value": 3, "unit": "feet"}  (or a list of those)
    or as the legacy string
      "dimension": "Height: 1 to 3 feet"
    Only the fields found are returned.
    """
    out: Dict[str, Optional[int]] = {k: None for k in DIMENSION_FIELDS}

    dims = details.get("dimensions")
    if isinstance(dims, dict):
        dims = [dims]
    for d in dims or []:
        if not isinstance(d, dict):
            continue
        kind = (d.get("type") or "").lower()
        what = "spread" if ("spread" in kind or "width" in kind) else "height"
        _put(out, what, _range_from_obj(d, unit=d.get("unit") or "feet"))

    legacy = details.get("dimension")
    if isinstance(legacy, str) and legacy.strip():
        kind, _, rest = legacy.partition(":")
        what = "spread" if ("spread" in kind.lower() or "width" in kind.lower()) else "height"
        _put(out, what, parse_dimension(rest or kind))
    elif isinstance(legacy, dict):
        _put(out, "height", _range_from_obj(legacy.get("height")))
        _put(out, "spread", _range_from_obj(legacy.get("spread") or legacy.get("width")))

    return {k: v for k, v in out.items() if v is not None}

def fill_inches(record: Dict[str, Any]) -> None:
    """Derive missing *_inches from *_cm on a record, in place."""
    for what in ("height", "spread"):
        for end in ("min", "max"):
            cm = record.get(f"{what}_{end}_cm")
            if cm not in (None, "") and record.get(f"{what}_{end}_inches") in (None, ""):
                try:
                    record[f"{what}_{end}_inches"] = cm_to_inches(float(cm))
                except (TypeError, ValueError):
                    pass
