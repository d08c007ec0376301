"""
Student ID Verification - Library Module
"""

__version__ = "1.0.0"

# Export important classes and functions
from .model import (Decision, NameSource, IdentityClaim, PreprocessingVariant, RecognitionResult,
                    ExtractedIdentity, AttemptScore, VerificationOutcome)
from .exceptions import VerificationError, InputNotFound, InvalidClaim, TransformError, RecognitionError
from .image_processing import DEFAULT_VARIANTS, ImageProcessor, get_variant_catalog
from .ocr_engines import TesseractOCR
from .information_extraction import IdentityExtractor, MatchingConfig, extract_identity
from .confidence import FusionWeights, fuse, decide, selection_score
from .utils import ProcessingStats
from .identity_verifier import IdentityVerifier, verify
