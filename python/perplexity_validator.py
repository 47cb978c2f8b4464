#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Ask Perplexity to fill the fields a plant record is still missing.

Only empty fields are asked for and only empty fields are written. The model
is told to answer with bare JSON; when it wraps the object in prose we pull
out the first {...} block. Anything unparseable leaves the record as it was.
"""

import json
import re
from typing import Any, Dict, List, Optional

import httpx

import import_settings
from import_settings import dbg, require_key, PERPLEXITY_URL
from plant_dimensions import coerce_cm, fill_inches
from plant_sources import is_empty, merge_missing

VALIDATABLE_FIELDS = (
    "common_name", "family", "genus", "species", "cycle", "watering", "sunlight", "soil",
    "hardiness", "growth_rate", "care_level", "maintenance", "flowering_season", "flower_color",
    "leaf_color", "native_region", "description", "poisonous_to_humans", "poisonous_to_pets",
    "height_min_cm", "height_max_cm", "spread_min_cm", "spread_max_cm",
)

FIELD_HINTS = {
    "cycle": 'one of "perennial", "annual", "biennial", "biannual"',
    "watering": 'one of "minimum", "average", "frequent"',
    "sunlight": 'array of strings, e.g. ["full sun", "part shade"]',
    "soil": 'array of strings, e.g. ["well-drained", "loam"]',
    "hardiness": 'USDA zone range as {"min": "5", "max": "9"}',
    "growth_rate": 'one of "low", "moderate", "high"',
    "care_level": 'one of "low", "medium", "high"',
    "maintenance": 'one of "low", "moderate", "high"',
    "flower_color": "array of strings",
    "leaf_color": "array of strings",
    "description": "two or three sentences",
    "poisonous_to_humans": "integer 0-5",
    "poisonous_to_pets": "integer 0-5",
    "height_min_cm": "integer", "height_max_cm": "integer",
    "spread_min_cm": "integer", "spread_max_cm": "integer",
}

SYSTEM_PROMPT = (
    "You are a botanical data validator for an ornamental garden plant database. "
    "Fill in missing plant fields using reliable horticultural sources "
    "(RHS, Missouri Botanical Garden, university extension services). "
    "Respond with a single JSON object and nothing else. "
    "Use null for any value you are not confident about."
)

JSON_BLOCK_RE = re.compile(r"\{[\s\S]*\}")

CM_FIELDS = ("height_min_cm", "height_max_cm", "spread_min_cm", "spread_max_cm")
SCORE_FIELDS = ("poisonous_to_humans", "poisonous_to_pets")
LIST_FIELDS = ("sunlight", "soil", "flower_color", "leaf_color")

def _score(v) -> Optional[int]:
    if isinstance(v, bool):
        return None
    if isinstance(v, str) and v.strip().isdigit():
        v = int(v.strip())
    if isinstance(v, int) and 0 <= v <= 5:
        return v
    return None

def _strings(v) -> Optional[List[str]]:
    if isinstance(v, str):
        v = [v]
    if not isinstance(v, list):
        return None
    out = [s.strip() for s in v if isinstance(s, str) and s.strip()]
    return out or None

def clean_answer(answer: Dict[str, Any], fields) -> Dict[str, Any]:
    """Keep the asked-for fields whose values have the column's shape; drop the rest."""
    out = {}
    for k in fields:
        v = answer.get(k)
        if k in CM_FIELDS:
            v = coerce_cm(v, "max" if "_max_" in k else "min")
        elif k in SCORE_FIELDS:
            v = _score(v)
        elif k in LIST_FIELDS:
            v = _strings(v)
        elif k == "hardiness":
            v = v if isinstance(v, (dict, str)) else None
        else:
            v = v.strip() if isinstance(v, str) else None
        if v is None or is_empty(v):
            if answer.get(k) is not None:
                dbg(f"Perplexity: dropping {k} ->", repr(answer.get(k)))
            continue
        out[k] = v
    return out

def empty_fields(record: Dict[str, Any], fields=VALIDATABLE_FIELDS) -> List[str]:
    return [f for f in fields if is_empty(record.get(f))]

def build_messages(record: Dict[str, Any], missing: List[str]) -> List[Dict[str, str]]:
    known = {k: v for k, v in record.items()
             if k in VALIDATABLE_FIELDS + ("scientific_name", "cultivar") and not is_empty(v)}
    shape = {f: FIELD_HINTS.get(f, "string") for f in missing}
    user = (
        f"Plant: {record.get('scientific_name') or record.get('common_name')}\n"
        f"Known data: {json.dumps(known, ensure_ascii=False)}\n"
        f"Missing fields: {', '.join(missing)}\n"
        f"Return exactly this JSON shape (types as described): {json.dumps(shape, ensure_ascii=False)}"
    )
    return [{"role": "system", "content": SYSTEM_PROMPT}, {"role": "user", "content": user}]

async def chat_completion(client: httpx.AsyncClient, api_key: str, messages: List[Dict[str, str]],
                          model: Optional[str] = None, max_tokens: Optional[int] = None,
                          temperature: float = 0.2) -> str:
    r = await client.post(
        PERPLEXITY_URL,
        headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
        json={
            "model": model or import_settings.PERPLEXITY_MODEL,
            "messages": messages,
            "max_tokens": max_tokens or import_settings.PERPLEXITY_MAX_TOKENS,
            "temperature": temperature,
            "stream": False,
        },
    )
    r.raise_for_status()
    choices = (r.json() or {}).get("choices") or []
    if not choices:
        return ""
    return ((choices[0].get("message") or {}).get("content") or "").strip()

def extract_json(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Direct parse first, then the first {...} block inside surrounding prose."""
    if not text:
        return None
    try:
        js = json.loads(text)
        return js if isinstance(js, dict) else None
    except ValueError:
        pass
    m = JSON_BLOCK_RE.search(text)
    if not m:
        return None
    try:
        js = json.loads(m.group(0))
    except ValueError:
        return None
    return js if isinstance(js, dict) else None

async def validate_plant(client: httpx.AsyncClient, record: Dict[str, Any],
                         api_key: Optional[str] = None) -> Dict[str, Any]:
    missing = empty_fields(record)
    if not missing:
        dbg("Perplexity: nothing missing for", record.get("scientific_name"))
        return record

    key = require_key("PERPLEXITY_API_KEY", api_key)
    content = await chat_completion(client, key, build_messages(record, missing))
    answer = extract_json(content)
    if answer is None:
        print("WARN: Perplexity answer was not JSON for", record.get("scientific_name"), "->", content[:120])
        return record

    filled = merge_missing(record, clean_answer(answer, missing))
    fill_inches(record)
    dbg("Perplexity filled:", filled)
    return record
