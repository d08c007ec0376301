#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Exceptions raised by the identity verification pipeline
"""

class VerificationError(Exception):
    """Base class for verification pipeline errors"""

class InputNotFound(VerificationError):
    """The candidate image is missing or cannot be decoded"""

class InvalidClaim(VerificationError):
    """The identity claim cannot be interpreted"""

class TransformError(VerificationError):
    """A preprocessing variant could not be applied"""

    def __init__(self, variant_name: str, message: str):
        super().__init__(f"{variant_name}: {message}")
        self.variant_name = variant_name

class RecognitionError(VerificationError):
    """The OCR engine failed on an image"""
