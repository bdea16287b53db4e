"""Tests for the on-disk baseline store."""

import hashlib
import json

import pytest

from resilient_qa.visual.baseline_store import BaselineStore


@pytest.fixture
def store(tmp_path) -> BaselineStore:
    return BaselineStore(tmp_path / "baselines")


class TestBaselineStore:
    """Tests for BaselineStore."""

    def test_key_format(self):
        assert BaselineStore.baseline_key("login", "dev", "chromium", "1280x720") == "login__dev__chromium__1280x720"

    def test_missing_baseline(self, store):
        assert store.get_baseline("login") is None

    def test_store_and_get(self, store, white_image):
        entry = store.store_baseline("login page", white_image, "staging", "firefox", "1280x720")

        assert entry.image_path == "images/login_page/staging_firefox_1280x720.png"
        assert entry.image_hash == hashlib.sha256(white_image).hexdigest()
        assert entry.perceptual_hash == "ffffffffffffffff"
        assert store.resolve(entry.image_path).read_bytes() == white_image

        found = store.get_baseline("login page", "staging", "firefox", "1280x720")
        assert found == entry
        assert store.get_baseline("login page", "dev", "firefox", "1280x720") is None

    def test_registry_written(self, store, white_image):
        store.store_baseline("login", white_image)
        with open(store.registry_path) as f:
            data = json.load(f)
        assert "login__dev__chromium__1920x1080" in data["baselines"]
        assert data["last_updated"]

    def test_overwrite_baseline(self, store, white_image, patched_image):
        store.store_baseline("login", white_image)
        store.store_baseline("login", patched_image)

        entry = store.get_baseline("login")
        assert store.resolve(entry.image_path).read_bytes() == patched_image
        assert len(store.load().baselines) == 1

    def test_deleted_image_treated_as_missing(self, store, white_image):
        entry = store.store_baseline("login", white_image)
        store.resolve(entry.image_path).unlink()
        assert store.get_baseline("login") is None

    def test_corrupt_registry_starts_fresh(self, store):
        store.registry_path.parent.mkdir(parents=True)
        store.registry_path.write_text("{not json")
        assert store.load().baselines == {}

    def test_save_run_image(self, store, patched_image):
        first = store.save_run_image("login", "diff", patched_image)
        second = store.save_run_image("login", "diff", patched_image)

        assert first.startswith("runs/login/")
        assert first.endswith("_diff.png")
        assert first != second
        assert store.resolve(first).read_bytes() == patched_image
