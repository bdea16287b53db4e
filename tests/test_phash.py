"""Tests for perceptual hashing."""

from resilient_qa.visual.phash import hash_similarity, hash_to_hex, perceptual_hash, region_hash


class TestPerceptualHash:
    def test_eight_bytes(self, white_image):
        assert len(perceptual_hash(white_image)) == 8

    def test_uniform_image_sets_every_bit(self, white_image):
        assert perceptual_hash(white_image) == b"\xff" * 8

    def test_same_image_same_hash(self, make_png):
        img = make_png(64, 64, patch=(0, 0, 32, 64))
        assert perceptual_hash(img) == perceptual_hash(img)

    def test_left_half_dark(self, make_png):
        img = make_png(64, 64, patch=(0, 0, 32, 64))
        # Each row: four dark columns then four light ones
        assert perceptual_hash(img) == b"\x0f" * 8

    def test_scale_invariant(self, make_png):
        small = make_png(64, 64, patch=(0, 0, 32, 64))
        large = make_png(256, 256, patch=(0, 0, 128, 256))
        assert perceptual_hash(small) == perceptual_hash(large)


class TestHashSimilarity:
    def test_identical(self):
        assert hash_similarity(b"\xff" * 8, b"\xff" * 8) == 1.0

    def test_half_bits_differ(self, make_png, white_image):
        half_dark = perceptual_hash(make_png(64, 64, patch=(0, 0, 32, 64)))
        assert hash_similarity(half_dark, perceptual_hash(white_image)) == 0.5

    def test_empty_or_mismatched(self):
        assert hash_similarity(b"", b"\xff") == 0.0
        assert hash_similarity(b"\xff" * 8, b"\xff" * 4) == 0.0

    def test_hex(self):
        assert hash_to_hex(b"\x0f\xa0") == "0fa0"


class TestRegionHash:
    def test_patch_matches_whole_image_hash(self, patched_image, white_image):
        assert region_hash(patched_image, 0, 0, 40, 40) == perceptual_hash(white_image)

    def test_outside_image(self, white_image):
        assert region_hash(white_image, 200, 200, 10, 10) == b""

    def test_partially_outside_clamped(self, patched_image):
        assert len(region_hash(patched_image, 90, 90, 50, 50)) == 8
