#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Identity field extraction for student ID documents
Finds the student number, the holder's name and the institution marker in
OCR text and compares each against the user's claim
"""

import re
import math
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .model import IdentityClaim, ExtractedIdentity, FieldMatches, NameSource
from .utils import normalize_text, normalize_for_id_search, digits_only, title_case

logger = logging.getLogger("IDVerify-Extraction")

# Student number shapes, tried in order. A shape must not touch another
# digit or hyphen so that longer numbers are never matched in part.
STUDENT_ID_PATTERNS = [
    r'\d{2}-\d{4}',         # 00-0000
    r'\d{4}-\d{4}',         # 0000-0000
    r'\d{8}',               # 00000000
    r'\d{2}-\d{4}-\d{2}',   # 00-0000-00
    r'\d{2}\s*-\s*\d{4}',   # 00 - 0000
    r'\d{2}\s+\d{4}',       # 00 0000
]

@dataclass(frozen=True)
class MatchingConfig:
    """Tuning constants for identity matching"""
    # OCR digit/letter confusions, swapped in both directions
    confusable_pairs: Tuple[Tuple[str, str], ...] = (
        ("O", "0"), ("I", "1"), ("S", "5"), ("B", "8"), ("G", "6"),
    )
    fuzzy_coverage: float = 0.8
    fuzzy_min_token_length: int = 4
    min_token_length: int = 2
    # Concatenated e-mail names (no separator in the local part)
    concatenated_min_length: int = 11
    concatenated_word_min_length: int = 3
    concatenated_prefix_length: int = 4
    min_accepted_components: int = 2
    component_denylist: Tuple[str, ...] = (
        "PAMANTASAN", "LUNGSOD", "VALENZUELA", "INFORMATION", "TECHNOLOGY",
        "BLOOD", "TYPE", "CITY", "CONTACT", "NUMBER", "ADDRESS", "PROPERTY",
    )
    institution_keywords: Tuple[str, ...] = (
        "PLV", "PAMANTASAN", "LUNGSOD", "VALENZUELA", "UNIVERSITY", "UNIBERSIDAD",
    )
    institution_label: str = "PLV"
    # None accepts an e-mail from any domain as a name source
    email_domain: Optional[str] = "plv.edu.ph"
    email_separators: Tuple[str, ...] = (".", "_")

DEFAULT_MATCHING = MatchingConfig()

class IdentityExtractor:
    """Extract and score identity fields from OCR text"""

    def __init__(self, matching: MatchingConfig = None):
        """
        Initialize the extractor

        Args:
            matching: Matching constants, DEFAULT_MATCHING when omitted
        """
        self.matching = matching or DEFAULT_MATCHING

    def extract(self, raw_text: str, claim: IdentityClaim) -> ExtractedIdentity:
        """
        Extract identity fields and compare them with the claim

        Never raises for odd text: missing fields simply do not match.

        Args:
            raw_text: Text returned by the OCR engine
            claim: Identity the user asserts

        Returns:
            ExtractedIdentity
        """
        info = ExtractedIdentity(matches=FieldMatches())
        if not raw_text:
            _, info.name_source = self.resolve_name(claim)
            return info

        clean_text = normalize_text(raw_text)
        logger.debug(f"Clean text for processing: {clean_text[:200]}")

        info.student_id, info.matches.student_id = self.match_student_id(raw_text, claim.student_id)

        name, source = self.resolve_name(claim)
        info.name_source = source
        if name:
            matched, found, missing = self.match_name(clean_text, name, source)
            info.matches.name = matched
            info.matched_name_parts = found
            info.missing_name_parts = missing
            if matched:
                info.name = name

        keyword = self.match_institution(clean_text)
        if keyword:
            info.institution = keyword
            info.matches.institution = True

        return info

    def match_student_id(self, raw_text: str, claimed_id: Optional[str]) -> Tuple[Optional[str], bool]:
        """
        Find the first student-number shape in the text

        Only digit streams are compared, so punctuation on either side never
        affects the result.

        Args:
            raw_text: OCR text
            claimed_id: Student number from the claim

        Returns:
            Tuple of (number as found on the document, whether it matches)
        """
        search_text = normalize_for_id_search(raw_text)
        for pattern in STUDENT_ID_PATTERNS:
            match = re.search(rf'(?<![\d-]){pattern}(?![\d-])', search_text)
            if match:
                found = match.group(0)
                ocr_digits = digits_only(found)
                user_digits = digits_only(claimed_id)
                is_match = bool(ocr_digits and user_digits and ocr_digits == user_digits)
                logger.debug(f"Student ID found: {found} (digits {ocr_digits}, claim {user_digits}, match {is_match})")
                return found, is_match

        logger.debug("No student ID shape found")
        return None, False

    def resolve_name(self, claim: IdentityClaim) -> Tuple[Optional[str], Optional[NameSource]]:
        """
        Decide which name the document must show

        The institutional e-mail is preferred over the free-text declared name.

        Args:
            claim: Identity the user asserts

        Returns:
            Tuple of (name, source), (None, None) when nothing is resolvable
        """
        local_part = self._qualifying_local_part(claim.email)
        if local_part:
            separator_pattern = "|".join(re.escape(sep) for sep in self.matching.email_separators)
            segments = [segment for segment in re.split(separator_pattern, local_part) if segment]
            if segments:
                return " ".join(title_case(segment) for segment in segments), NameSource.EMAIL_DERIVED

        if claim.declared_full_name and claim.declared_full_name.strip():
            return claim.declared_full_name.strip(), NameSource.CLAIM_NAME

        return None, None

    def _qualifying_local_part(self, email: Optional[str]) -> Optional[str]:
        if not email or "@" not in email:
            return None
        local_part, _, domain = email.strip().rpartition("@")
        required = self.matching.email_domain
        if required and domain.lower() != required.lower():
            return None
        return local_part or None

    def match_name(self, clean_text: str, name: str,
                   source: Optional[NameSource]) -> Tuple[bool, List[str], List[str]]:
        """
        Check that every name token appears in the text

        Args:
            clean_text: Normalized OCR text
            name: Name to look for
            source: Where the name came from

        Returns:
            Tuple of (all tokens found, found tokens, missing tokens)
        """
        normalized_name = normalize_text(name).strip()
        name_parts = [part for part in normalized_name.split()
                      if len(part) >= self.matching.min_token_length]

        if (len(name_parts) == 1 and len(name_parts[0]) >= self.matching.concatenated_min_length
                and source is NameSource.EMAIL_DERIVED):
            components = self.find_concatenated_components(clean_text, name_parts[0])
            if len(components) >= self.matching.min_accepted_components:
                logger.debug(f"Concatenated name matched through components {components}")
                name_parts = components
            else:
                logger.debug(f"Concatenated name: only {len(components)} component(s) found")

        found, missing = [], []
        for part in name_parts:
            if self.find_token(clean_text, part):
                found.append(part)
            else:
                missing.append(part)

        matched = bool(name_parts) and not missing
        logger.debug(f"Name parts found {found}, missing {missing}: {'match' if matched else 'no match'}")
        return matched, found, missing

    def find_token(self, clean_text: str, token: str) -> bool:
        """
        Look for one name token, trying exact, confusable and fuzzy matching

        Args:
            clean_text: Normalized OCR text
            token: Uppercase name token

        Returns:
            True if any strategy finds the token
        """
        if token in clean_text:
            return True

        for variation in self.confusable_variations(token):
            if variation in clean_text:
                logger.debug(f"Name part {token} found as OCR variation {variation}")
                return True

        if len(token) >= self.matching.fuzzy_min_token_length:
            window = math.ceil(len(token) * self.matching.fuzzy_coverage)
            for start in range(len(token) - window + 1):
                fragment = token[start:start + window]
                if fragment in clean_text:
                    logger.debug(f"Name part {token} found by partial match {fragment}")
                    return True

        return False

    def confusable_variations(self, token: str) -> List[str]:
        """Token spellings produced by swapping each confusable pair"""
        variations = []
        for letter, digit in self.matching.confusable_pairs:
            for old, new in ((letter, digit), (digit, letter)):
                if old in token:
                    variation = token.replace(old, new)
                    if variation not in variations:
                        variations.append(variation)
        return variations

    def find_concatenated_components(self, clean_text: str, concatenated: str) -> List[str]:
        """
        Find OCR words that look like pieces of a concatenated e-mail name

        Args:
            clean_text: Normalized OCR text
            concatenated: Uppercase local part such as JOSEPHVENEDICTTILLO

        Returns:
            Distinct accepted words in reading order
        """
        denylist = set(self.matching.component_denylist)
        min_length = self.matching.concatenated_word_min_length
        prefix_length = self.matching.concatenated_prefix_length
        components = []

        for word in clean_text.split():
            clean_word = re.sub(r'[^A-Z]', '', word)
            if len(clean_word) < min_length or clean_word in denylist or clean_word in components:
                continue

            if clean_word in concatenated or concatenated in clean_word:
                components.append(clean_word)
            elif len(clean_word) >= prefix_length and concatenated.startswith(clean_word[:prefix_length]):
                # Similar first name, e.g. JOSELITO on the card for JOSEPH...
                components.append(clean_word)

        return components

    def match_institution(self, clean_text: str) -> Optional[str]:
        """Return the first institution keyword present in the text"""
        for keyword in self.matching.institution_keywords:
            if keyword in clean_text:
                logger.debug(f"Institution keyword found: {keyword}")
                return keyword
        return None

def extract_identity(raw_text: str, claim: IdentityClaim,
                     matching: MatchingConfig = None) -> ExtractedIdentity:
    """
    Extract identity fields using a one-off extractor

    Args:
        raw_text: OCR text
        claim: Identity the user asserts
        matching: Optional matching constants

    Returns:
        ExtractedIdentity
    """
    return IdentityExtractor(matching).extract(raw_text, claim)
