#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Shared configuration for the plant import scripts.

Env:
  PERENUAL_API_KEY        Perenual species search/details
  PERPLEXITY_API_KEY      Perplexity chat completions (field validator)
  RUNWARE_API_KEY         Runware image inference
  SUPABASE_URL
  SUPABASE_SERVICE_ROLE   (service role key)

Everything else has a default and can be tuned from the environment.
"""

import os
from typing import Optional

import httpx
from dotenv import load_dotenv
from supabase import create_client, Client

# ---------- Debug ----------
DEBUG = False

def dbg(*args, **kwargs):
    if DEBUG:
        print("[DBG]", *args, **kwargs)

def set_debug(on: bool):
    global DEBUG
    DEBUG = bool(on)

# ---------- Config ----------
PERENUAL_BASE = "https://perenual.com/api"
GBIF_BASE = "https://api.gbif.org/v1"
INAT_BASE = "https://api.inaturalist.org/v1"
PERPLEXITY_URL = "https://api.perplexity.ai/chat/completions"
RUNWARE_BASE = "https://api.runware.ai/v1"
USER_AGENT = "gardenscape-plant-import/1.0"

PLANTS_TABLE = os.getenv("PLANTS_TABLE", "plants")
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "30"))
HTTP_MAX_CONN = int(os.getenv("HTTP_MAX_CONN", "40"))
PERENUAL_PER_PAGE = 100
PERENUAL_MAX_PAGES = int(os.getenv("PERENUAL_MAX_PAGES", "20"))    # 20 x 100 = 2000 rows max
SEARCH_LIMIT = 100                                                 # GBIF / iNat page size
PERPLEXITY_MODEL = os.getenv("PERPLEXITY_MODEL", "sonar")
PERPLEXITY_MAX_TOKENS = int(os.getenv("PERPLEXITY_MAX_TOKENS", "1024"))
GENERATED_IMAGES_DIR = os.getenv("GENERATED_IMAGES_DIR", "generated-images")
RULES_VERSION = os.getenv("NOMENCLATURE_RULES_VERSION", "")       # empty -> latest

# ---------- Secrets ----------
class MissingAPIKey(RuntimeError):
    """Raised before any network call when a required key is not configured."""

def api_key(name: str) -> Optional[str]:
    load_dotenv()
    value = (os.getenv(name) or "").strip()
    return value or None

def require_key(name: str, value: Optional[str] = None) -> str:
    key = value if value is not None else api_key(name)
    if not key:
        raise MissingAPIKey(f"{name} is not configured")
    return key

# ---------- Clients ----------
def make_client(**kwargs) -> httpx.AsyncClient:
    # one pooled client per run; adapters share it
    return httpx.AsyncClient(
        http2=True,
        timeout=HTTP_TIMEOUT,
        limits=httpx.Limits(max_keepalive_connections=HTTP_MAX_CONN,
                            max_connections=HTTP_MAX_CONN),
        headers={"User-Agent": USER_AGENT},
        **kwargs,
    )

def get_sb() -> Client:
    load_dotenv()
    url = os.environ["SUPABASE_URL"]
    key = os.environ["SUPABASE_SERVICE_ROLE"]
    return create_client(url, key)
