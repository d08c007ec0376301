#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Utility functions and classes for the identity verification pipeline
"""

import os
import re
import time
import logging
import threading
import unicodedata
from typing import Dict, Any, Optional

logger = logging.getLogger("IDVerify-Utils")

class ProcessingStats:
    """
    Caller-supplied sink for verification metrics

    One instance can be shared by concurrent invocations; updates are
    serialized with a lock.
    """

    def __init__(self, max_timings=50):
        self.max_timings = max_timings
        self.lock = threading.Lock()
        self.reset()

    def reset(self):
        """Clear all counters"""
        self.total_processed = 0
        self.decisions = {}
        self.all_variants_failed = 0
        self.variant_wins = {}
        self.variant_failures = {}
        self.processing_times = []

    def record(self, outcome, processing_time: float):
        """
        Record one completed verification

        Args:
            outcome: VerificationOutcome produced by the pipeline
            processing_time: Wall-clock seconds spent on the invocation
        """
        with self.lock:
            self.total_processed += 1

            decision = outcome.decision.value
            self.decisions[decision] = self.decisions.get(decision, 0) + 1

            if outcome.best_variant is None:
                self.all_variants_failed += 1
            else:
                self.variant_wins[outcome.best_variant] = self.variant_wins.get(outcome.best_variant, 0) + 1

            for attempt in outcome.trace:
                if attempt.failed:
                    name = attempt.variant.name
                    self.variant_failures[name] = self.variant_failures.get(name, 0) + 1

            self.processing_times.append(processing_time)
            # Limit list size to avoid memory issues
            if len(self.processing_times) > self.max_timings:
                self.processing_times = self.processing_times[-self.max_timings:]

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get a snapshot of the recorded metrics

        Returns:
            Dictionary with counters and rates
        """
        with self.lock:
            approved = self.decisions.get("auto_approved", 0)
            times = self.processing_times
            return {
                "total_processed": self.total_processed,
                "decisions": dict(self.decisions),
                "auto_approval_rate": round(approved / self.total_processed * 100, 2) if self.total_processed else 0.0,
                "all_variants_failed": self.all_variants_failed,
                "variant_wins": dict(self.variant_wins),
                "variant_failures": dict(self.variant_failures),
                "average_processing_time": round(sum(times) / len(times), 3) if times else 0.0,
            }

def fold_accents(text: str) -> str:
    """Strip combining marks after NFKD decomposition"""
    decomposed = unicodedata.normalize('NFKD', text)
    return ''.join(char for char in decomposed if not unicodedata.combining(char))

def normalize_text(text: Optional[str]) -> str:
    """
    Normalize OCR text for field matching

    Folds accented letters to their base letter (NIÑO becomes NINO), then
    uppercases and replaces everything outside [A-Z0-9] and whitespace with a
    space, so punctuation never glues two words together.

    Args:
        text: Raw OCR text

    Returns:
        Normalized text
    """
    if not text:
        return ""
    return re.sub(r'[^A-Z0-9\s]', ' ', fold_accents(text).upper())

def normalize_for_id_search(text: Optional[str]) -> str:
    """Uppercase text keeping hyphens, used for student ID shapes"""
    if not text:
        return ""
    return re.sub(r'[^A-Z0-9\s\-]', ' ', fold_accents(text).upper())

def digits_only(value: Optional[str]) -> str:
    """Strip everything but digits"""
    if not value:
        return ""
    return re.sub(r'[^0-9]', '', value)

def title_case(word: str) -> str:
    """Capitalize the first letter and lowercase the rest"""
    if not word:
        return ""
    return word[0].upper() + word[1:].lower()

def remove_file(file_path: str) -> bool:
    """
    Delete a temporary file, logging rather than raising on failure

    Args:
        file_path: Path to delete

    Returns:
        True if the file is gone afterwards
    """
    try:
        if os.path.exists(file_path):
            os.remove(file_path)
        return True
    except OSError as e:
        logger.warning(f"Could not remove temporary file {file_path}: {e}")
        return False

def elapsed_ms(start: float) -> float:
    """Milliseconds since a time.time() reading"""
    return (time.time() - start) * 1000

def get_available_libraries() -> Dict[str, bool]:
    """
    Check which imaging and OCR libraries are importable

    Returns:
        Dictionary mapping library names to availability status
    """
    libraries = {
        "cv2": False,
        "PIL": False,
        "pytesseract": False,
    }

    try:
        import cv2
        libraries["cv2"] = True
    except ImportError:
        pass

    try:
        from PIL import Image
        libraries["PIL"] = True
    except ImportError:
        pass

    try:
        import pytesseract
        libraries["pytesseract"] = True
    except ImportError:
        pass

    return libraries
