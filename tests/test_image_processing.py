"""Tests for image loading and the preprocessing variant catalog."""

import os

import cv2
import numpy as np
import pytest

from idverify import DEFAULT_VARIANTS, ImageProcessor, PreprocessingVariant, get_variant_catalog
from idverify.exceptions import InputNotFound, TransformError


@pytest.fixture
def processor(tmp_path):
    return ImageProcessor({"max_image_dimension": 3000, "temp_dir": str(tmp_path)})


# ---------------------------------------------------------------------------
# Variant catalog
# ---------------------------------------------------------------------------

class TestVariantCatalog:

    def test_catalog_order(self):
        names = [variant.name for variant in DEFAULT_VARIANTS]
        assert names == ["original", "grayscale", "enhanced", "threshold", "adaptive", "high_contrast"]

    def test_original_is_passthrough(self):
        assert DEFAULT_VARIANTS[0].is_passthrough
        assert not any(variant.is_passthrough for variant in DEFAULT_VARIANTS[1:])

    def test_no_overrides_returns_default(self):
        assert get_variant_catalog() is DEFAULT_VARIANTS

    def test_override_merges_parameters(self):
        catalog = get_variant_catalog({"threshold": {"threshold": {"value": 100}}})

        threshold = dict(catalog[3].steps)
        assert threshold["threshold"] == {"value": 100}
        assert [variant.name for variant in catalog] == [variant.name for variant in DEFAULT_VARIANTS]
        assert catalog[2] is DEFAULT_VARIANTS[2]

    def test_override_leaves_other_steps(self):
        catalog = get_variant_catalog({"high_contrast": {"sharpen": {"amount": 2.0}}})

        steps = dict(catalog[5].steps)
        assert steps["sharpen"] == {"sigma": 1.5, "amount": 2.0}
        assert steps["gamma"] == {"gamma": 0.8}

    def test_unknown_variant_rejected(self):
        with pytest.raises(ValueError):
            get_variant_catalog({"sepia": {}})


# ---------------------------------------------------------------------------
# Applying variants
# ---------------------------------------------------------------------------

class TestApplyVariant:

    @pytest.mark.parametrize("variant", DEFAULT_VARIANTS, ids=lambda v: v.name)
    def test_variant_output(self, processor, card_image, variant):
        processed = processor.apply_variant(card_image, variant)

        assert processed.dtype == np.uint8
        assert processed.shape[:2] == card_image.shape[:2]

    def test_passthrough_returns_input(self, processor, card_image):
        assert processor.apply_variant(card_image, DEFAULT_VARIANTS[0]) is card_image

    def test_threshold_is_binary(self, processor, card_image):
        processed = processor.apply_variant(card_image, DEFAULT_VARIANTS[3])

        assert set(np.unique(processed)) <= {0, 255}

    def test_grayscale_of_grayscale(self, processor, card_image):
        gray = cv2.cvtColor(card_image, cv2.COLOR_BGR2GRAY)

        assert processor.apply_variant(gray, DEFAULT_VARIANTS[1]) is gray

    def test_unknown_operation(self, processor, card_image):
        variant = PreprocessingVariant("sepia", "Sepia tone", (("sepia", {}),))

        with pytest.raises(TransformError) as excinfo:
            processor.apply_variant(card_image, variant)
        assert excinfo.value.variant_name == "sepia"

    def test_bad_parameters(self, processor, card_image):
        variant = PreprocessingVariant("broken", "Bad block size", (
            ("adaptive_threshold", {"block_size": 4}),
        ))

        with pytest.raises(TransformError):
            processor.apply_variant(card_image, variant)

    def test_unexpected_parameter(self, processor, card_image):
        variant = PreprocessingVariant("broken", "Unexpected parameter", (("grayscale", {"level": 2}),))

        with pytest.raises(TransformError):
            processor.apply_variant(card_image, variant)


# ---------------------------------------------------------------------------
# Loading images
# ---------------------------------------------------------------------------

class TestLoadImage:

    def test_missing_path(self, processor, tmp_path):
        with pytest.raises(InputNotFound):
            processor.load_image(str(tmp_path / "missing.png"))

    def test_unreadable_file(self, processor, tmp_path):
        path = tmp_path / "not_an_image.png"
        path.write_bytes(b"plain text")

        with pytest.raises(InputNotFound):
            processor.load_image(str(path))

    def test_path(self, processor, card_path, card_image):
        image = processor.load_image(card_path)

        assert image.shape == card_image.shape

    def test_encoded_bytes(self, processor, card_image):
        ok, encoded = cv2.imencode(".png", card_image)
        assert ok

        image = processor.load_image(encoded.tobytes())
        assert image.shape == card_image.shape

    @pytest.mark.parametrize("data", [b"", b"\x00\x01\x02not an image"])
    def test_bad_bytes(self, processor, data):
        with pytest.raises(InputNotFound):
            processor.load_image(data)

    def test_empty_array(self, processor):
        with pytest.raises(InputNotFound):
            processor.load_image(np.zeros((0, 0, 3), dtype=np.uint8))

    def test_unsupported_source(self, processor):
        with pytest.raises(InputNotFound):
            processor.load_image(12345)

    def test_large_image_is_downscaled(self):
        processor = ImageProcessor({"max_image_dimension": 500})

        image = processor.load_image(np.zeros((400, 1000, 3), dtype=np.uint8))
        assert image.shape[:2] == (200, 500)

    def test_small_image_untouched(self, processor, card_image):
        assert processor.load_image(card_image) is card_image


# ---------------------------------------------------------------------------
# Temporary variant files
# ---------------------------------------------------------------------------

class TestVariantImageFile:

    def test_source_path_reused(self, processor, card_image, card_path):
        with processor.variant_image_file(card_image, DEFAULT_VARIANTS[0], source_path=card_path) as path:
            assert path == card_path

        assert os.path.exists(card_path)

    def test_temp_file_removed(self, processor, card_image, tmp_path):
        with processor.variant_image_file(card_image, DEFAULT_VARIANTS[1]) as path:
            assert os.path.exists(path)
            assert os.path.dirname(path) == str(tmp_path)
            assert os.path.basename(path).startswith("idverify_grayscale_")

        assert not os.path.exists(path)

    def test_temp_file_removed_on_error(self, processor, card_image):
        with pytest.raises(RuntimeError):
            with processor.variant_image_file(card_image, DEFAULT_VARIANTS[2]) as path:
                raise RuntimeError("engine crashed")

        assert not os.path.exists(path)
