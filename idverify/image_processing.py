#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Image loading and preprocessing variants for identity verification
Each variant is a named, ordered list of OpenCV operations
"""

import os
import tempfile
import logging
from contextlib import contextmanager
from typing import Dict, Tuple, Optional, Union, Any, Callable

import cv2
import numpy as np

from .model import PreprocessingVariant
from .exceptions import InputNotFound, TransformError
from .utils import remove_file

logger = logging.getLogger("IDVerify-ImageProcessing")

ImageSource = Union[str, os.PathLike, bytes, bytearray, memoryview, np.ndarray]

def _grayscale(image):
    if len(image.shape) == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)

def _normalize(image):
    return cv2.normalize(image, None, 0, 255, cv2.NORM_MINMAX)

def _sharpen(image, sigma=1.0, amount=1.0):
    # Unsharp mask
    blurred = cv2.GaussianBlur(image, (0, 0), sigma)
    return cv2.addWeighted(image, 1.0 + amount, blurred, -amount, 0)

def _contrast(image, alpha=1.2, brightness=1.0):
    # Stretch around mid-gray, then scale brightness
    adjusted = image.astype(np.float32) * alpha + 128.0 * (1.0 - alpha)
    adjusted *= brightness
    return np.clip(adjusted, 0, 255).astype(np.uint8)

def _threshold(image, value=128):
    _, binary = cv2.threshold(_grayscale(image), value, 255, cv2.THRESH_BINARY)
    return binary

def _adaptive_threshold(image, block_size=21, c=10):
    return cv2.adaptiveThreshold(_grayscale(image), 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
                                 cv2.THRESH_BINARY, block_size, c)

def _denoise(image, strength=10):
    if len(image.shape) == 2:
        return cv2.fastNlMeansDenoising(image, None, strength, 7, 21)
    return cv2.fastNlMeansDenoisingColored(image, None, strength, strength, 7, 21)

def _blur(image, sigma=0.3):
    return cv2.GaussianBlur(image, (0, 0), sigma)

def _gamma(image, gamma=0.8):
    table = np.array([((i / 255.0) ** gamma) * 255 for i in range(256)]).astype(np.uint8)
    return cv2.LUT(image, table)

# Operation name -> function(image, **params)
OPERATIONS: Dict[str, Callable[..., np.ndarray]] = {
    "grayscale": _grayscale,
    "normalize": _normalize,
    "sharpen": _sharpen,
    "contrast": _contrast,
    "threshold": _threshold,
    "adaptive_threshold": _adaptive_threshold,
    "denoise": _denoise,
    "blur": _blur,
    "gamma": _gamma,
}

DEFAULT_VARIANTS: Tuple[PreprocessingVariant, ...] = (
    PreprocessingVariant("original", "No preprocessing"),
    PreprocessingVariant("grayscale", "Grayscale conversion", (
        ("grayscale", {}),
    )),
    PreprocessingVariant("enhanced", "Grayscale + contrast + sharpening", (
        ("grayscale", {}),
        ("normalize", {}),
        ("sharpen", {"sigma": 1.0, "amount": 1.0}),
        ("contrast", {"alpha": 1.2}),
    )),
    PreprocessingVariant("threshold", "Binary threshold", (
        ("grayscale", {}),
        ("normalize", {}),
        ("threshold", {"value": 128}),
    )),
    PreprocessingVariant("adaptive", "Noise reduction + sharpening", (
        ("grayscale", {}),
        ("normalize", {}),
        ("denoise", {"strength": 10}),
        ("sharpen", {"sigma": 1.0, "amount": 1.0}),
        ("contrast", {"alpha": 1.3}),
    )),
    PreprocessingVariant("high_contrast", "High contrast + gamma correction", (
        ("grayscale", {}),
        ("normalize", {}),
        ("gamma", {"gamma": 0.8}),
        ("contrast", {"alpha": 1.5, "brightness": 1.1}),
        ("sharpen", {"sigma": 1.5, "amount": 1.5}),
    )),
)

def get_variant_catalog(overrides: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None
                        ) -> Tuple[PreprocessingVariant, ...]:
    """
    Return the preprocessing catalog, optionally with tuned parameters

    Args:
        overrides: {variant_name: {operation: {param: value}}}; parameters are
                   merged into every step of that operation in that variant

    Returns:
        Ordered tuple of PreprocessingVariant
    """
    if not overrides:
        return DEFAULT_VARIANTS

    unknown = set(overrides) - {variant.name for variant in DEFAULT_VARIANTS}
    if unknown:
        raise ValueError(f"Unknown preprocessing variants: {sorted(unknown)}")

    catalog = []
    for variant in DEFAULT_VARIANTS:
        tuned = overrides.get(variant.name)
        if not tuned:
            catalog.append(variant)
            continue
        steps = tuple(
            (operation, {**params, **tuned.get(operation, {})})
            for operation, params in variant.steps
        )
        catalog.append(PreprocessingVariant(variant.name, variant.description, steps))
    return tuple(catalog)

class ImageProcessor:
    """Loads candidate images and applies preprocessing variants"""

    def __init__(self, config=None):
        """
        Initialize the image processor

        Args:
            config: Configuration dictionary (max_image_dimension, temp_dir)
        """
        self.config = config or {}

    def load_image(self, source: ImageSource) -> np.ndarray:
        """
        Read the candidate image from a path, raw bytes or an array

        Args:
            source: File path, encoded image bytes, or a decoded OpenCV image

        Returns:
            OpenCV image (BGR or grayscale)

        Raises:
            InputNotFound: if the image is missing or cannot be decoded
        """
        if isinstance(source, np.ndarray):
            if source.size == 0:
                raise InputNotFound("Empty image array")
            image = source
        elif isinstance(source, (bytes, bytearray, memoryview)):
            buffer = np.frombuffer(bytes(source), dtype=np.uint8)
            image = cv2.imdecode(buffer, cv2.IMREAD_COLOR) if buffer.size else None
            if image is None:
                raise InputNotFound("Image bytes could not be decoded")
        elif isinstance(source, (str, os.PathLike)):
            path = os.fspath(source)
            if not os.path.isfile(path):
                raise InputNotFound(f"File not found: {path}")
            image = cv2.imread(path)
            if image is None:
                raise InputNotFound(f"Failed to read image file: {path}")
        else:
            raise InputNotFound(f"Unsupported image source: {type(source).__name__}")

        return self._limit_size(image)

    def _limit_size(self, image: np.ndarray) -> np.ndarray:
        """Downscale images larger than max_image_dimension"""
        max_dimension = self.config.get("max_image_dimension")
        if not max_dimension:
            return image

        h, w = image.shape[:2]
        if max(h, w) <= max_dimension:
            return image

        scale = max_dimension / max(h, w)
        logger.info(f"Resizing image from {w}x{h} by {scale:.2f}")
        return cv2.resize(image, (int(w * scale), int(h * scale)), interpolation=cv2.INTER_AREA)

    def apply_variant(self, image: np.ndarray, variant: PreprocessingVariant) -> np.ndarray:
        """
        Apply a variant's operations in order

        Args:
            image: OpenCV image
            variant: Variant to apply

        Returns:
            Transformed image (the input itself for pass-through)

        Raises:
            TransformError: if an operation is unknown or fails
        """
        processed = image
        for operation, params in variant.steps:
            func = OPERATIONS.get(operation)
            if func is None:
                raise TransformError(variant.name, f"unknown operation '{operation}'")
            try:
                processed = func(processed, **params)
            except (cv2.error, ValueError, TypeError) as e:
                raise TransformError(variant.name, f"{operation} failed: {e}") from e
        return processed

    @contextmanager
    def variant_image_file(self, image: np.ndarray, variant: PreprocessingVariant,
                           source_path: Optional[str] = None):
        """
        Provide a file holding the image for the recognition engine

        When source_path is given that file is reused as is. Otherwise a
        temporary PNG is written and deleted when the block exits, whichever
        way it exits.

        Raises:
            TransformError: if the temporary image cannot be written
        """
        if source_path:
            yield source_path
            return

        fd, path = tempfile.mkstemp(prefix=f"idverify_{variant.name}_", suffix=".png",
                                    dir=self.config.get("temp_dir"))
        os.close(fd)
        try:
            try:
                written = cv2.imwrite(path, image)
            except cv2.error as e:
                raise TransformError(variant.name, f"could not write temporary image: {e}") from e
            if not written:
                raise TransformError(variant.name, "could not write temporary image")
            yield path
        finally:
            remove_file(path)
