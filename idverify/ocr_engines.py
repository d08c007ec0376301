#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
OCR engine wrapper for the identity verification pipeline
Handles Tesseract integration behind a narrow recognize() contract
"""

import os
import logging
from typing import Dict, Optional, Union, List, Tuple

import cv2
import numpy as np
import pytesseract
from PIL import Image, UnidentifiedImageError

from .model import PreprocessingVariant, RecognitionResult
from .exceptions import RecognitionError

logger = logging.getLogger("IDVerify-OCREngines")

# Characters Tesseract may emit on ID documents
CHAR_WHITELIST = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-.,: "

class TesseractOCR:
    """Wrapper for Tesseract OCR returning text, confidence and word count"""

    def __init__(self, config=None):
        """
        Initialize Tesseract OCR with configuration

        Args:
            config: Configuration dictionary (tesseract_path, tesseract_data_path,
                    language, ocr_timeout, tesseract_psm)
        """
        self.config = config or {}
        self._configure_tesseract()

    def _configure_tesseract(self):
        """Configure Tesseract based on OS and user settings"""
        if self.config.get("tesseract_path"):
            pytesseract.pytesseract.tesseract_cmd = self.config["tesseract_path"]
        elif os.name == 'nt':  # Windows
            pytesseract.pytesseract.tesseract_cmd = r'C:\Program Files\Tesseract-OCR\tesseract.exe'
        elif os.path.exists('/usr/bin/tesseract'):
            # Linux path
            pytesseract.pytesseract.tesseract_cmd = '/usr/bin/tesseract'
        elif os.path.exists('/usr/local/bin/tesseract'):
            # macOS path
            pytesseract.pytesseract.tesseract_cmd = '/usr/local/bin/tesseract'

        # Configure Tesseract data path if provided
        if self.config.get("tesseract_data_path"):
            os.environ["TESSDATA_PREFIX"] = self.config["tesseract_data_path"]

    def get_version(self) -> Optional[str]:
        """Return the Tesseract version, or None if the binary is unusable"""
        try:
            return str(pytesseract.get_tesseract_version())
        except (pytesseract.TesseractNotFoundError, EnvironmentError) as e:
            logger.error(f"Error getting Tesseract version: {e}")
            return None

    def _build_config(self) -> str:
        psm = self.config.get("tesseract_psm", 3)
        return (f'--oem 1 --psm {psm} -c preserve_interword_spaces=1 '
                f'-c tessedit_char_whitelist="{CHAR_WHITELIST}"')

    def recognize(self, image: Union[str, np.ndarray],
                  variant: Optional[PreprocessingVariant] = None) -> RecognitionResult:
        """
        Recognize text in one (possibly preprocessed) image

        Finding no text is not an error: it yields an empty result with zero
        confidence.

        Args:
            image: Image file path or OpenCV image
            variant: Variant the image was produced by, for logging

        Returns:
            RecognitionResult

        Raises:
            RecognitionError: if Tesseract cannot process the input
        """
        variant_name = variant.name if variant else "unknown"
        language = self.config.get("language", "eng")
        timeout = self.config.get("ocr_timeout", 0)
        custom_config = self._build_config()

        try:
            if isinstance(image, np.ndarray):
                # Convert to PIL image for Tesseract
                if len(image.shape) == 3:
                    image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
                target = Image.fromarray(image.astype('uint8'))
            else:
                target = image

            data = pytesseract.image_to_data(target, lang=language, config=custom_config,
                                             timeout=timeout, output_type=pytesseract.Output.DICT)
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as e:
            raise RecognitionError(f"Tesseract failed on {variant_name}: {e}") from e
        except RuntimeError as e:
            # pytesseract signals its timeout with RuntimeError
            raise RecognitionError(f"Tesseract timed out on {variant_name}: {e}") from e
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise RecognitionError(f"Unreadable image for {variant_name}: {e}") from e

        confidence = self._average_confidence(data.get('conf', []))
        text, word_count = self._text_from_data(data)

        logger.debug(f"Tesseract {variant_name}: confidence {confidence:.1f}, {word_count} words")

        return RecognitionResult(
            raw_text=text,
            engine_confidence=confidence,
            word_count=word_count,
        )

    @staticmethod
    def _text_from_data(data: Dict[str, List]) -> Tuple[str, int]:
        """
        Rebuild the page text from Tesseract's word table

        Words keep their reading order; each (block, paragraph, line) becomes
        one output line.

        Returns:
            Tuple of (text, word count)
        """
        lines = {}
        words = data.get('text', [])
        columns = [data.get(name) or [0] * len(words) for name in ('block_num', 'par_num', 'line_num')]
        for i, word in enumerate(words):
            word = str(word).strip()
            if not word:
                continue
            key = tuple(column[i] for column in columns)
            lines.setdefault(key, []).append(word)

        text = "\n".join(" ".join(line) for line in lines.values())
        return text, sum(len(line) for line in lines.values())

    @staticmethod
    def _average_confidence(values: List) -> float:
        """Mean of the per-word confidences Tesseract reports (-1 marks non-words)"""
        confidences = []
        for value in values:
            try:
                conf = float(value)
            except (TypeError, ValueError):
                continue
            if conf >= 0:
                confidences.append(conf)
        return sum(confidences) / len(confidences) if confidences else 0.0
