import os

import cv2
import numpy as np
import pytest

from idverify import IdentityClaim, RecognitionResult

ID_CARD_TEXT = (
    "PAMANTASAN NG LUNGSOD NG VALENZUELA\n"
    "JUAN DELA CRUZ\n"
    "Student No. 21-1234\n"
)

class FakeEngine:
    """Recognition engine returning scripted results per variant name"""

    def __init__(self, default=None, by_variant=None):
        self.default = default
        self.by_variant = by_variant or {}
        self.calls = []

    def recognize(self, image, variant=None):
        name = variant.name if variant else None
        path_existed = os.path.exists(image) if isinstance(image, str) else None
        self.calls.append({"variant": name, "image": image, "path_existed": path_existed})

        result = self.by_variant.get(name, self.default)
        if isinstance(result, Exception):
            raise result
        if result is None:
            return RecognitionResult(raw_text="", engine_confidence=0.0, word_count=0)
        return result

@pytest.fixture
def make_engine():
    """Factory for scripted recognition engines"""
    return FakeEngine

@pytest.fixture
def card_image():
    """Synthetic ID card image"""
    image = np.full((200, 480, 3), 235, dtype=np.uint8)
    cv2.putText(image, "JUAN DELA CRUZ", (20, 80), cv2.FONT_HERSHEY_SIMPLEX, 1.0, (20, 20, 20), 2)
    cv2.putText(image, "21-1234", (20, 150), cv2.FONT_HERSHEY_SIMPLEX, 1.0, (20, 20, 20), 2)
    return image

@pytest.fixture
def card_path(tmp_path, card_image):
    """Synthetic ID card written to disk"""
    path = tmp_path / "student_id.png"
    cv2.imwrite(str(path), card_image)
    return str(path)

@pytest.fixture
def claim():
    return IdentityClaim(email="juan.dela.cruz@plv.edu.ph", student_id="21-1234")

@pytest.fixture
def card_result():
    return RecognitionResult(raw_text=ID_CARD_TEXT, engine_confidence=85.0, word_count=11)
