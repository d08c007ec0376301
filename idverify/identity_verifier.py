#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Identity verification engine
Runs every preprocessing variant through recognition, extraction and fusion,
then keeps the best attempt
"""

import os
import time
import logging
import concurrent.futures
from collections.abc import Mapping
from dataclasses import replace
from typing import Dict, List, Optional, Any, Iterable

from .model import (IdentityClaim, PreprocessingVariant, RecognitionResult, AttemptScore,
                    ExtractedIdentity, VerificationOutcome, Decision)
from .exceptions import InvalidClaim, TransformError, RecognitionError
from .image_processing import ImageProcessor, ImageSource, get_variant_catalog
from .ocr_engines import TesseractOCR
from .information_extraction import IdentityExtractor, MatchingConfig
from .confidence import FusionWeights, DEFAULT_WEIGHTS, fuse, decide, selection_score
from .utils import ProcessingStats, elapsed_ms

logger = logging.getLogger("IDVerify-Verifier")

ALL_VARIANTS_FAILED = "All recognition strategies failed. Please upload a clearer image of your ID."

class IdentityVerifier:
    """Document identity verification pipeline"""

    def __init__(self, config=None, engine=None, variants: Optional[Iterable[PreprocessingVariant]] = None,
                 matching: Optional[MatchingConfig] = None, weights: Optional[FusionWeights] = None,
                 stats: Optional[ProcessingStats] = None):
        """
        Initialize the verifier

        Args:
            config: Dictionary overriding the default configuration
            engine: Recognition engine exposing recognize(image, variant);
                    a TesseractOCR is created when omitted
            variants: Preprocessing catalog, the default catalog when omitted
            matching: Matching constants for field extraction
            weights: Fusion weights
            stats: Optional metrics sink updated after each invocation
        """
        # Default configuration
        self.config = {
            "tesseract_path": None,
            "tesseract_data_path": None,
            "language": "eng",
            "ocr_timeout": 30,              # Seconds per Tesseract call, 0 disables
            "tesseract_psm": 3,             # Fully automatic page segmentation
            "auto_approve_threshold": 70,
            "quality_threshold": 70,        # Engine confidence below this is reported
            "base_engine_confidence": 30,   # Used when the engine gives no confidence
            "parallel_variants": False,
            "max_workers": 4,
            "max_image_dimension": 3000,
            "temp_dir": None,               # Where transformed images are written
            "variant_overrides": None,      # {variant: {operation: {param: value}}}
            "debug_mode": False,
        }

        # Override with user config
        if config:
            self.config.update(config)

        self.image_processor = ImageProcessor(self.config)
        self.engine = engine if engine is not None else TesseractOCR(self.config)
        self.variants = (tuple(variants) if variants is not None
                         else get_variant_catalog(self.config["variant_overrides"]))
        if not self.variants:
            raise ValueError("At least one preprocessing variant is required")

        self.extractor = IdentityExtractor(matching)
        self.weights = weights or DEFAULT_WEIGHTS
        self.stats = stats

        logger.info(f"IdentityVerifier initialized with variants: {[v.name for v in self.variants]}")

    def verify(self, image: ImageSource, claim) -> VerificationOutcome:
        """
        Verify a photographed identity document against a claim

        Recoverable failures never raise: a document that could not be read
        comes back as a pending_review outcome with zero confidence.

        Args:
            image: File path, encoded image bytes or an OpenCV image
            claim: IdentityClaim or a mapping with email/full_name/student_id

        Returns:
            VerificationOutcome

        Raises:
            InputNotFound: if the image is missing or cannot be decoded
            InvalidClaim: if the claim cannot be interpreted
        """
        start_time = time.time()
        outcome = self._verify_document(image, claim)
        self._record(outcome, start_time)
        return outcome

    def verify_pair(self, front: ImageSource, back: Optional[ImageSource], claim) -> VerificationOutcome:
        """
        Verify the front and, when supplied, the back of a document

        Either side passing the auto-approval gate approves the pair. The
        reported outcome is the approved side if any, otherwise the side with
        the higher confidence (the front on ties). The pair counts as one
        verification in the metrics sink.

        Args:
            front: Front image
            back: Back image or None
            claim: Identity the user asserts

        Returns:
            VerificationOutcome with combined_confidence set
        """
        start_time = time.time()
        front_outcome = self._verify_document(front, claim, document="front")

        if back is None:
            front_outcome.combined_confidence = front_outcome.confidence
            self._record(front_outcome, start_time)
            return front_outcome

        back_outcome = self._verify_document(back, claim, document="back")

        approved = [o for o in (front_outcome, back_outcome) if o.auto_approved]
        candidates = approved or [front_outcome, back_outcome]
        best = candidates[0]
        if len(candidates) > 1 and candidates[1].confidence > best.confidence:
            best = candidates[1]

        outcome = replace(
            best,
            trace=front_outcome.trace + back_outcome.trace,
            processing_time_ms=front_outcome.processing_time_ms + back_outcome.processing_time_ms,
            combined_confidence=max(front_outcome.confidence, back_outcome.confidence),
        )
        self._record(outcome, start_time)
        return outcome

    def _verify_document(self, image: ImageSource, claim, document: Optional[str] = None) -> VerificationOutcome:
        """Run every variant on one image without touching the metrics sink"""
        start_time = time.time()
        claim = self._coerce_claim(claim)
        loaded = self.image_processor.load_image(image)
        source_path = os.fspath(image) if isinstance(image, (str, os.PathLike)) else None

        trace = self._run_variants(loaded, source_path, claim)
        for attempt in trace:
            attempt.document = document
        outcome = self._select_best(trace, claim)
        outcome.processing_time_ms = elapsed_ms(start_time)

        logger.info(f"Verification{' of ' + document if document else ''} finished in "
                    f"{outcome.processing_time_ms:.0f} ms: {outcome.decision.value}, "
                    f"confidence {outcome.confidence}, best variant {outcome.best_variant}")
        return outcome

    def _record(self, outcome: VerificationOutcome, start_time: float):
        if self.stats is not None:
            self.stats.record(outcome, time.time() - start_time)

    def _coerce_claim(self, claim) -> IdentityClaim:
        if isinstance(claim, IdentityClaim):
            result = claim
        elif isinstance(claim, Mapping):
            result = IdentityClaim.from_mapping(claim)
        else:
            raise InvalidClaim(f"Unsupported claim type: {type(claim).__name__}")

        for field_name in ("email", "declared_full_name", "student_id"):
            value = getattr(result, field_name)
            if value is not None and not isinstance(value, str):
                raise InvalidClaim(f"Claim field '{field_name}' must be a string")
        return result

    def _run_variants(self, image, source_path: Optional[str], claim: IdentityClaim) -> List[AttemptScore]:
        """Run every variant; results keep catalog order"""
        if self.config["parallel_variants"] and len(self.variants) > 1:
            workers = min(self.config["max_workers"], len(self.variants))
            with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
                return list(executor.map(
                    lambda variant: self._attempt(image, source_path, variant, claim), self.variants))

        return [self._attempt(image, source_path, variant, claim) for variant in self.variants]

    def _attempt(self, image, source_path: Optional[str], variant: PreprocessingVariant,
                 claim: IdentityClaim) -> AttemptScore:
        """
        Score one preprocessing variant

        A transform failure falls back to the untransformed image; a
        recognition failure becomes a zero-confidence trace entry.
        """
        transform_start = time.time()
        fallback = False
        try:
            processed = self.image_processor.apply_variant(image, variant)
        except TransformError as e:
            logger.warning(f"Preprocessing failed, using untransformed image: {e}")
            processed = image
            fallback = True
        transform_time = elapsed_ms(transform_start)

        reuse_path = source_path if (variant.is_passthrough or fallback) else None
        recognition_start = time.time()
        try:
            recognition = self._recognize(processed, variant, reuse_path)
        except RecognitionError as e:
            logger.error(f"Method {variant.name} failed: {e}")
            return self._failed_attempt(variant, str(e), fallback, transform_time, elapsed_ms(recognition_start))
        except Exception as e:
            logger.exception(f"Unexpected recognition error for {variant.name}")
            return self._failed_attempt(variant, f"Unexpected error: {e}", fallback, transform_time,
                                        elapsed_ms(recognition_start))
        recognition_time = elapsed_ms(recognition_start)

        return self._score(variant, recognition, claim, fallback, transform_time, recognition_time)

    def _recognize(self, image, variant: PreprocessingVariant, reuse_path: Optional[str]) -> RecognitionResult:
        try:
            with self.image_processor.variant_image_file(image, variant, reuse_path) as image_path:
                return self.engine.recognize(image_path, variant)
        except TransformError as e:
            logger.warning(f"{e}; recognizing the image in memory")
            return self.engine.recognize(image, variant)

    def _score(self, variant: PreprocessingVariant, recognition: RecognitionResult, claim: IdentityClaim,
               fallback: bool, transform_time: float, recognition_time: float) -> AttemptScore:
        extracted = self.extractor.extract(recognition.raw_text, claim)
        fusion = fuse(
            recognition.engine_confidence,
            extracted,
            weights=self.weights,
            base_engine_confidence=self.config["base_engine_confidence"],
            quality_threshold=self.config["quality_threshold"],
            institution_label=self.extractor.matching.institution_label,
        )
        score = selection_score(fusion.confidence, recognition.text_length, extracted)

        logger.info(f"Method {variant.name} - Confidence: {fusion.confidence}%, "
                    f"Text length: {recognition.text_length}, Score: {score:.1f}, "
                    f"Matches: {extracted.matches.to_dict()}")

        return AttemptScore(
            variant=variant,
            confidence=fusion.confidence,
            extracted=extracted,
            failure_reasons=fusion.failure_reasons,
            selection_score=score,
            text_length=recognition.text_length,
            engine_confidence=recognition.engine_confidence,
            word_count=recognition.word_count,
            transform_fallback=fallback,
            transform_time_ms=transform_time,
            recognition_time_ms=recognition_time,
            raw_text=recognition.raw_text,
        )

    @staticmethod
    def _failed_attempt(variant: PreprocessingVariant, error: str, fallback: bool,
                        transform_time: float, recognition_time: float) -> AttemptScore:
        return AttemptScore(
            variant=variant,
            confidence=0,
            failure_reasons=[f"Text recognition failed for {variant.name} preprocessing: {error}"],
            selection_score=0.0,
            error=error,
            transform_fallback=fallback,
            transform_time_ms=transform_time,
            recognition_time_ms=recognition_time,
        )

    def _select_best(self, trace: List[AttemptScore], claim: IdentityClaim) -> VerificationOutcome:
        """
        Pick the attempt with the highest selection score

        Ties go to the earliest variant in catalog order.
        """
        if self.config["debug_mode"]:
            logger.debug(f"All attempts: {[attempt.to_trace_dict() for attempt in trace]}")

        successful = [attempt for attempt in trace if not attempt.failed]
        if not successful:
            logger.warning("No successful recognition attempts")
            _, name_source = self.extractor.resolve_name(claim)
            return VerificationOutcome(
                confidence=0,
                extracted=ExtractedIdentity(name_source=name_source),
                decision=Decision.PENDING_REVIEW,
                failure_reasons=[ALL_VARIANTS_FAILED],
                trace=trace,
                best_variant=None,
            )

        best = successful[0]
        for attempt in successful[1:]:
            if attempt.selection_score > best.selection_score:
                best = attempt

        decision = decide(best.confidence, best.extracted, self.config["auto_approve_threshold"])
        failure_reasons = [] if decision is Decision.AUTO_APPROVED else list(best.failure_reasons)
        if decision is Decision.PENDING_REVIEW and not failure_reasons:
            # Every signal matched, only the configured threshold was missed
            failure_reasons.append(
                f"Confidence {best.confidence}% is below the auto-approval threshold "
                f"{self.config['auto_approve_threshold']}%."
            )

        logger.info(f"Best method: {best.variant.name} ({best.variant.description}) "
                    f"with score {best.selection_score:.1f}")

        return VerificationOutcome(
            confidence=best.confidence,
            extracted=best.extracted,
            decision=decision,
            failure_reasons=failure_reasons,
            trace=trace,
            best_variant=best.variant.name,
        )

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get configuration and, when a metrics sink is attached, its counters

        Returns:
            Dictionary with statistics
        """
        statistics = {
            "engine": type(self.engine).__name__,
            "variants": [variant.name for variant in self.variants],
            "auto_approve_threshold": self.config["auto_approve_threshold"],
            "parallel_variants": self.config["parallel_variants"],
        }
        if self.stats is not None:
            statistics["processing_stats"] = self.stats.get_statistics()
        return statistics

def verify(image: ImageSource, claim, config=None, engine=None) -> VerificationOutcome:
    """
    Verify one document with a freshly configured verifier

    Args:
        image: File path, encoded image bytes or an OpenCV image
        claim: IdentityClaim or mapping
        config: Optional configuration overrides
        engine: Optional recognition engine

    Returns:
        VerificationOutcome
    """
    return IdentityVerifier(config=config, engine=engine).verify(image, claim)
