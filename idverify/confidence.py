#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Confidence fusion and decision policy
"""

import math
import logging
from dataclasses import dataclass
from typing import Optional

from .model import ExtractedIdentity, FusionResult, Decision

logger = logging.getLogger("IDVerify-Fusion")

@dataclass(frozen=True)
class FusionWeights:
    """Contribution of each signal to the 0-100 confidence"""
    ocr: float = 0.40          # Multiplies the engine confidence
    student_id: float = 30
    name: float = 20
    institution: float = 10

    def __post_init__(self):
        if self.max_score > 100:
            raise ValueError(f"Fusion weights allow a score of {self.max_score}, above 100")

    @property
    def max_score(self) -> float:
        return 100 * self.ocr + self.student_id + self.name + self.institution

@dataclass(frozen=True)
class SelectionWeights:
    """Weights of the internal score used to pick the best variant"""
    confidence: float = 0.4
    text_length: float = 0.2
    matches: float = 0.4
    text_length_divisor: float = 10
    text_length_cap: float = 20
    student_id_points: float = 20
    name_points: float = 15
    institution_points: float = 5

DEFAULT_WEIGHTS = FusionWeights()
DEFAULT_SELECTION = SelectionWeights()

def fuse(engine_confidence: Optional[float], extracted: ExtractedIdentity,
         weights: FusionWeights = DEFAULT_WEIGHTS, base_engine_confidence: float = 30,
         quality_threshold: float = 70, institution_label: str = "PLV") -> FusionResult:
    """
    Combine engine confidence and field matches into one score

    Args:
        engine_confidence: OCR engine confidence (0-100), None if unavailable
        extracted: Field extraction result
        weights: Signal weights
        base_engine_confidence: Stand-in used when the engine gave no confidence
        quality_threshold: Engine confidence below which image quality is reported
        institution_label: Institution name used in the failure message

    Returns:
        FusionResult with the rounded, clamped confidence and failure reasons
    """
    failure_reasons = []
    matches = extracted.matches

    available = engine_confidence is not None
    if available:
        ocr_quality = max(0.0, min(100.0, float(engine_confidence)))
        if ocr_quality < quality_threshold:
            failure_reasons.append(
                f"Poor image quality ({round(ocr_quality)}% OCR confidence). Please upload a clearer image."
            )
    else:
        ocr_quality = float(base_engine_confidence)
        failure_reasons.append("Unable to determine image quality. Please upload a clearer image.")

    score = ocr_quality * weights.ocr

    if matches.student_id:
        score += weights.student_id
    elif extracted.student_id:
        failure_reasons.append(
            f'Student ID mismatch. Found "{extracted.student_id}" but expected your registered ID.'
        )
    else:
        failure_reasons.append("Student ID not found in document. Please ensure your ID number is clearly visible.")

    if matches.name:
        score += weights.name
    elif extracted.name_source is None:
        failure_reasons.append("No name on record to compare with the document. Name check was skipped.")
    else:
        failure_reasons.append("Name not found in document. Please ensure your full name is clearly visible.")

    if matches.institution:
        score += weights.institution
    else:
        failure_reasons.append(
            f"University identifier ({institution_label}) not found. "
            f"Please ensure this is a valid {institution_label} document."
        )

    # Half-up rounding
    confidence = int(max(0, min(100, math.floor(score + 0.5))))
    logger.debug(f"Fused confidence {confidence} (ocr {ocr_quality:.1f}, matches {matches.to_dict()})")

    return FusionResult(
        confidence=confidence,
        failure_reasons=failure_reasons,
        ocr_quality=ocr_quality,
        engine_confidence_available=available,
        student_id_match=matches.student_id,
        name_match=matches.name,
        institution_match=matches.institution,
    )

def decide(confidence: int, extracted: ExtractedIdentity, threshold: float = 70) -> Decision:
    """
    Apply the auto-approval gate

    A high score alone is not enough: the student number and the name must
    both match.

    Args:
        confidence: Fused confidence
        extracted: Field extraction result
        threshold: Minimum confidence for automatic approval

    Returns:
        Decision.AUTO_APPROVED or Decision.PENDING_REVIEW
    """
    if confidence >= threshold and extracted.matches.student_id and extracted.matches.name:
        return Decision.AUTO_APPROVED
    return Decision.PENDING_REVIEW

def selection_score(confidence: int, text_length: int, extracted: ExtractedIdentity,
                    weights: SelectionWeights = DEFAULT_SELECTION) -> float:
    """
    Score an attempt for best-variant selection

    Text length is only used here, never in the reported confidence.

    Args:
        confidence: Fused confidence of the attempt
        text_length: Length of the raw OCR text
        extracted: Field extraction result

    Returns:
        Selection score
    """
    matches = extracted.matches
    match_score = 0.0
    if matches.student_id:
        match_score += weights.student_id_points
    if matches.name:
        match_score += weights.name_points
    if matches.institution:
        match_score += weights.institution_points

    length_score = min(text_length / weights.text_length_divisor, weights.text_length_cap)
    return (confidence * weights.confidence
            + length_score * weights.text_length
            + match_score * weights.matches)
