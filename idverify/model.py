#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Data models and enums for the identity verification pipeline
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import List, Dict, Tuple, Optional, Any

class Decision(Enum):
    """Terminal outcome of one verification invocation"""
    AUTO_APPROVED = "auto_approved"
    PENDING_REVIEW = "pending_review"
    REJECTED_NO_SIGNAL = "rejected_no_signal"  # Reserved for admin tooling, never emitted here

class NameSource(Enum):
    """Where the name compared against the document came from"""
    CLAIM_NAME = "claim_name"
    EMAIL_DERIVED = "email_derived"

@dataclass(frozen=True)
class IdentityClaim:
    """Identity information the user asserts"""
    email: Optional[str] = None
    declared_full_name: Optional[str] = None
    student_id: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "IdentityClaim":
        """
        Build a claim from a loosely keyed mapping (form data, JSON body)

        Args:
            data: Mapping with any of email, full_name/declared_full_name,
                  student_id/student_no

        Returns:
            IdentityClaim
        """
        return cls(
            email=data.get("email") or None,
            declared_full_name=data.get("declared_full_name") or data.get("full_name") or None,
            student_id=data.get("student_id") or data.get("student_no") or None,
        )

@dataclass(frozen=True)
class PreprocessingVariant:
    """One deterministic image transform tried before recognition"""
    name: str
    description: str
    steps: Tuple[Tuple[str, Dict[str, Any]], ...] = ()  # (operation, parameters) applied in order

    @property
    def is_passthrough(self) -> bool:
        return not self.steps

@dataclass(frozen=True)
class RecognitionResult:
    """Raw output of the text recognition engine for one image"""
    raw_text: str
    engine_confidence: Optional[float]  # 0-100, None when the engine reports none
    word_count: int = 0

    @property
    def text_length(self) -> int:
        return len(self.raw_text or "")

@dataclass
class FieldMatches:
    student_id: bool = False
    name: bool = False
    institution: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return {
            "student_id": self.student_id,
            "name": self.name,
            "institution": self.institution,
        }

@dataclass
class ExtractedIdentity:
    """Identity fields found in OCR text and how they compare to the claim"""
    student_id: Optional[str] = None
    name: Optional[str] = None
    name_source: Optional[NameSource] = None
    institution: Optional[str] = None
    matches: FieldMatches = field(default_factory=FieldMatches)
    # Name tokens that were found / missing, kept for review tooling
    matched_name_parts: List[str] = field(default_factory=list)
    missing_name_parts: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "student_id": self.student_id,
            "name": self.name,
            "name_source": self.name_source.value if self.name_source else None,
            "institution": self.institution,
            "matches": self.matches.to_dict(),
            "matched_name_parts": list(self.matched_name_parts),
            "missing_name_parts": list(self.missing_name_parts),
        }

@dataclass
class FusionResult:
    """Fused confidence for one recognition attempt"""
    confidence: int
    failure_reasons: List[str]
    ocr_quality: float
    engine_confidence_available: bool
    student_id_match: bool
    name_match: bool
    institution_match: bool

@dataclass
class AttemptScore:
    """Result of one preprocessing variant; failed attempts carry an error"""
    variant: PreprocessingVariant
    confidence: int = 0
    extracted: ExtractedIdentity = field(default_factory=ExtractedIdentity)
    failure_reasons: List[str] = field(default_factory=list)
    selection_score: float = 0.0
    text_length: int = 0
    engine_confidence: Optional[float] = None
    word_count: int = 0
    error: Optional[str] = None
    transform_fallback: bool = False
    transform_time_ms: float = 0.0
    recognition_time_ms: float = 0.0
    raw_text: str = ""
    document: Optional[str] = None  # "front" or "back" when verifying a pair

    @property
    def failed(self) -> bool:
        return self.error is not None

    def match_summary(self) -> Dict[str, bool]:
        return self.extracted.matches.to_dict()

    def to_trace_dict(self) -> Dict[str, Any]:
        return {
            "variant_name": self.variant.name,
            "document": self.document,
            "confidence": self.confidence,
            "text_length": self.text_length,
            "match_summary": self.match_summary(),
            "selection_score": round(self.selection_score, 2),
            "engine_confidence": self.engine_confidence,
            "word_count": self.word_count,
            "failed": self.failed,
            "error": self.error,
            "transform_fallback": self.transform_fallback,
            "failure_reasons": list(self.failure_reasons),
            "transform_time_ms": round(self.transform_time_ms, 2),
            "recognition_time_ms": round(self.recognition_time_ms, 2),
        }

@dataclass
class VerificationOutcome:
    """The pipeline's sole return value"""
    confidence: int
    extracted: ExtractedIdentity
    decision: Decision
    failure_reasons: List[str]
    trace: List[AttemptScore]
    best_variant: Optional[str] = None
    processing_time_ms: float = 0.0
    combined_confidence: Optional[int] = None  # Set only for front/back pairs

    @property
    def auto_approved(self) -> bool:
        return self.decision is Decision.AUTO_APPROVED

    def to_dict(self, include_trace: bool = True) -> Dict[str, Any]:
        data = {
            "confidence": self.confidence,
            "decision": self.decision.value,
            "extracted": self.extracted.to_dict(),
            "failure_reasons": list(self.failure_reasons),
            "best_variant": self.best_variant,
            "processing_time_ms": round(self.processing_time_ms, 2),
        }
        if self.combined_confidence is not None:
            data["combined_confidence"] = self.combined_confidence
        if include_trace:
            data["trace"] = [attempt.to_trace_dict() for attempt in self.trace]
        return data
