#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Botanical images from Runware.

One imageInference task per call; the result is downloaded and written to
{plant-slug}-{type}-{epoch ms}.png under the images directory. The returned
path is the public one: /generated-images/<file>.
"""

import os
import re
import time
import uuid
from typing import Optional

import requests
from requests.adapters import HTTPAdapter

import import_settings
from import_settings import dbg, require_key, USER_AGENT

IMAGE_TYPES = ("thumbnail", "full", "detail")
MIN_IMAGE_BYTES = 10000
RUNWARE_MODEL = "runware:100@1"
IMAGE_SIZE = 768

VIEW_BY_TYPE = {
    "full": "full plant in garden setting",
    "detail": "close-up detail of flowers or leaves",
    "thumbnail": "centered specimen portrait",
}

class ImageGenerationError(RuntimeError):
    pass

def _make_session() -> requests.Session:
    s = requests.Session()
    # no retries: one task per call
    adapter = HTTPAdapter(max_retries=0, pool_connections=4, pool_maxsize=4)
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    s.headers.update({"User-Agent": USER_AGENT})
    return s

def plant_slug(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())

def botanical_prompt(plant_name: str, image_type: str) -> str:
    return (f"professional botanical photography of {plant_name}, {VIEW_BY_TYPE[image_type]}, "
            "natural lighting, high resolution nature photography, sharp focus, garden background")


class RunwareImageGenerator:
    def __init__(self, api_key: Optional[str] = None, images_dir: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.api_key = require_key("RUNWARE_API_KEY", api_key)
        self.images_dir = images_dir or import_settings.GENERATED_IMAGES_DIR
        self.session = session or _make_session()
        self.base_url = import_settings.RUNWARE_BASE

    def _task(self, plant_name: str, image_type: str) -> dict:
        return {
            "taskType": "imageInference",
            "taskUUID": str(uuid.uuid4()),
            "positivePrompt": botanical_prompt(plant_name, image_type),
            "model": RUNWARE_MODEL,
            "numberOfImages": 1,
            "height": IMAGE_SIZE,
            "width": IMAGE_SIZE,
            "outputFormat": "PNG",
        }

    def _image_url(self, task: dict) -> str:
        r = self.session.post(
            f"{self.base_url}/images",
            json=[task],
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=import_settings.HTTP_TIMEOUT,
        )
        if not r.ok:
            raise ImageGenerationError(f"Runware API failed: {r.status_code} {r.text[:200]}")
        data = (r.json() or {}).get("data") or []
        if not data:
            raise ImageGenerationError("No data in Runware response")
        hit = next((d for d in data if d.get("taskUUID") == task["taskUUID"]), None)
        if not hit or not hit.get("imageURL"):
            raise ImageGenerationError("No matching task result in Runware response")
        return hit["imageURL"]

    def generate(self, plant_name: str, image_type: str = "thumbnail") -> str:
        if image_type not in IMAGE_TYPES:
            raise ValueError(f"unknown image type {image_type!r} (have {', '.join(IMAGE_TYPES)})")

        print(f"Generating with Runware: {plant_name} ({image_type})")
        url = self._image_url(self._task(plant_name, image_type))

        dbg("Downloading", url)
        img = self.session.get(url, timeout=import_settings.HTTP_TIMEOUT)
        if not img.ok:
            raise ImageGenerationError(f"Failed to download image from Runware: {img.status_code}")
        content = img.content
        if len(content) <= MIN_IMAGE_BYTES:
            raise ImageGenerationError(f"Image too small: {len(content)} bytes")

        os.makedirs(self.images_dir, exist_ok=True)
        filename = f"{plant_slug(plant_name)}-{image_type}-{int(time.time() * 1000)}.png"
        with open(os.path.join(self.images_dir, filename), "wb") as f:
            f.write(content)
        print(f"Runware generated: {filename} ({len(content) / 1024:.1f} KB)")
        return f"/generated-images/{filename}"
