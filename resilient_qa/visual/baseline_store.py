"""Baseline store — keeps checkpoint baseline PNGs and their JSON registry on disk."""

from __future__ import annotations

import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Optional

from resilient_qa.models.visual import BaselineEntry, BaselineRegistry
from resilient_qa.visual.phash import hash_to_hex, perceptual_hash

logger = logging.getLogger(__name__)


def _safe_name(value: str) -> str:
    return "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in value)


class BaselineStore:
    """Manages baseline images plus actual/diff outputs under one directory.

    Layout::

        <root>/registry.json
        <root>/images/<checkpoint>/<env>_<browser>_<viewport>.png
        <root>/runs/<checkpoint>/<timestamp>_{actual,diff}.png
    """

    def __init__(self, root: Path | str):
        self.root = Path(root)
        self.registry_path = self.root / "registry.json"

    def load(self) -> BaselineRegistry:
        """Load registry from disk, or create a new one."""
        if self.registry_path.exists():
            try:
                with open(self.registry_path) as f:
                    data = json.load(f)
                return BaselineRegistry(**data)
            except Exception as e:
                logger.warning("Failed to load baseline registry: %s. Creating new.", e)
        return BaselineRegistry()

    def save(self, registry: BaselineRegistry) -> None:
        self.registry_path.parent.mkdir(parents=True, exist_ok=True)
        registry.last_updated = time.strftime("%Y-%m-%dT%H:%M:%SZ")
        with open(self.registry_path, "w") as f:
            json.dump(registry.model_dump(), f, indent=2)
        logger.debug("Saved baseline registry to %s", self.registry_path)

    @staticmethod
    def baseline_key(checkpoint_name: str, environment: str, browser: str, viewport: str) -> str:
        return f"{checkpoint_name}__{environment}__{browser}__{viewport}"

    def get_baseline(
        self,
        checkpoint_name: str,
        environment: str = "dev",
        browser: str = "chromium",
        viewport: str = "1920x1080",
    ) -> Optional[BaselineEntry]:
        registry = self.load()
        key = self.baseline_key(checkpoint_name, environment, browser, viewport)
        entry = registry.baselines.get(key)
        if entry is None:
            return None
        if not self.resolve(entry.image_path).exists():
            logger.warning("Baseline image missing for %s: %s", key, entry.image_path)
            return None
        return entry

    def resolve(self, relative_path: str) -> Path:
        return self.root / relative_path

    def store_baseline(
        self,
        checkpoint_name: str,
        image: bytes,
        environment: str = "dev",
        browser: str = "chromium",
        viewport: str = "1920x1080",
    ) -> BaselineEntry:
        """Write an image as the baseline for a checkpoint and register it."""
        dest = (
            self.root
            / "images"
            / _safe_name(checkpoint_name)
            / f"{_safe_name(environment)}_{_safe_name(browser)}_{_safe_name(viewport)}.png"
        )
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(image)

        entry = BaselineEntry(
            checkpoint_name=checkpoint_name,
            environment=environment,
            browser=browser,
            viewport=viewport,
            image_path=str(dest.relative_to(self.root)),
            captured_at=time.strftime("%Y-%m-%dT%H:%M:%SZ"),
            image_hash=hashlib.sha256(image).hexdigest(),
            perceptual_hash=hash_to_hex(perceptual_hash(image)),
        )

        registry = self.load()
        registry.baselines[self.baseline_key(checkpoint_name, environment, browser, viewport)] = entry
        self.save(registry)
        logger.info("Stored baseline for checkpoint '%s' (%s/%s/%s)", checkpoint_name, environment, browser, viewport)
        return entry

    def save_run_image(self, checkpoint_name: str, kind: str, image: bytes) -> str:
        """Persist an actual or diff image from a comparison run; returns the relative path."""
        stamp = time.strftime("%Y%m%d_%H%M%S")
        dest = self.root / "runs" / _safe_name(checkpoint_name) / f"{stamp}_{time.monotonic_ns()}_{kind}.png"
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(image)
        return str(dest.relative_to(self.root))
