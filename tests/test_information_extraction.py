"""Tests for identity field extraction."""

import pytest

from idverify import IdentityClaim, IdentityExtractor, MatchingConfig, NameSource, extract_identity

from conftest import ID_CARD_TEXT


@pytest.fixture
def extractor():
    return IdentityExtractor()


# ---------------------------------------------------------------------------
# Student ID
# ---------------------------------------------------------------------------


class TestStudentId:

    @pytest.mark.parametrize("document_id, claimed_id, expected", [
        ("21-1234", "21-1234", True),
        ("21-1234", "211234", True),
        ("21 - 1234", "21-1234", True),
        ("21 1234", "21.1234", True),
        ("2021-1234", "20211234", True),
        ("20211234", "2021-1234", True),
        ("21-1234", "21-1235", False),
        ("21-1234", None, False),
    ])
    def test_digit_stream_comparison(self, extractor, document_id, claimed_id, expected):
        found, matches = extractor.match_student_id(f"STUDENT NO {document_id} BSIT", claimed_id)

        assert found is not None
        assert matches is expected

    def test_long_shape_is_reachable(self, extractor):
        found, matches = extractor.match_student_id("ID 21-1234-56", "21123456")

        assert found == "21-1234-56"
        assert matches is True

    def test_first_shape_wins(self, extractor):
        found, _ = extractor.match_student_id("20211234 AND 21-1234", "21-1234")

        assert found == "21-1234"

    def test_no_id_found(self, extractor):
        found, matches = extractor.match_student_id("JUAN DELA CRUZ", "21-1234")

        assert found is None
        assert matches is False


# ---------------------------------------------------------------------------
# Name resolution
# ---------------------------------------------------------------------------


class TestNameResolution:

    @pytest.mark.parametrize("local_part, expected", [
        ("juan.dela.cruz", "Juan Dela Cruz"),
        ("MARIA.clara", "Maria Clara"),
        ("a.b.c", "A B C"),
        ("ana..reyes", "Ana Reyes"),
        ("jose_rizal", "Jose Rizal"),
    ])
    def test_separated_email_local_part(self, extractor, local_part, expected):
        claim = IdentityClaim(email=f"{local_part}@plv.edu.ph", declared_full_name="Someone Else")

        name, source = extractor.resolve_name(claim)

        assert name == expected
        assert source is NameSource.EMAIL_DERIVED

    def test_email_without_separator(self, extractor):
        claim = IdentityClaim(email="josephvenedicttillo@plv.edu.ph")

        assert extractor.resolve_name(claim) == ("Josephvenedicttillo", NameSource.EMAIL_DERIVED)

    def test_other_domain_falls_back_to_declared_name(self, extractor):
        claim = IdentityClaim(email="juan.cruz@gmail.com", declared_full_name="Juan Dela Cruz")

        assert extractor.resolve_name(claim) == ("Juan Dela Cruz", NameSource.CLAIM_NAME)

    def test_any_domain_when_unrestricted(self):
        extractor = IdentityExtractor(MatchingConfig(email_domain=None))
        claim = IdentityClaim(email="juan.cruz@gmail.com")

        assert extractor.resolve_name(claim) == ("Juan Cruz", NameSource.EMAIL_DERIVED)

    def test_nothing_resolvable(self, extractor):
        assert extractor.resolve_name(IdentityClaim(student_id="21-1234")) == (None, None)


# ---------------------------------------------------------------------------
# Name matching
# ---------------------------------------------------------------------------


class TestNameMatching:

    def test_all_tokens_exact(self, extractor):
        matched, found, missing = extractor.match_name(
            "JUAN DELA CRUZ 21 1234", "Juan Dela Cruz", NameSource.EMAIL_DERIVED)

        assert matched is True
        assert found == ["JUAN", "DELA", "CRUZ"]
        assert missing == []

    def test_one_missing_token_fails(self, extractor):
        matched, found, missing = extractor.match_name(
            "JUAN CRUZ 21 1234", "Juan Dela Cruz", NameSource.EMAIL_DERIVED)

        assert matched is False
        assert missing == ["DELA"]

    def test_confusable_characters(self, extractor):
        assert extractor.find_token("LU1S REYES", "LUIS") is True
        assert extractor.find_token("R0SA", "ROSA") is True
        assert extractor.find_token("8ENITO", "BENITO") is True

    def test_confusable_variations_both_directions(self, extractor):
        variations = extractor.confusable_variations("O0")

        assert "00" in variations
        assert "OO" in variations

    def test_fuzzy_partial_match(self, extractor):
        # 8 of 9 characters survive OCR
        assert extractor.find_token("CRISTOBAI MENDOZA", "CRISTOBAL") is True

    def test_short_tokens_skip_fuzzy(self, extractor):
        assert extractor.find_token("ANA", "ANN") is False

    def test_initials_are_ignored(self, extractor):
        matched, found, _ = extractor.match_name("JUAN CRUZ", "Juan P Cruz", NameSource.CLAIM_NAME)

        assert matched is True
        assert found == ["JUAN", "CRUZ"]

    @pytest.mark.parametrize("card_name", ["NINO PENA", "NIÑO PEÑA"])
    def test_accented_name_keeps_whole_tokens(self, extractor, card_name):
        matched, found, missing = extractor.match_name(card_name, "Niño Peña", NameSource.CLAIM_NAME)

        assert matched is True
        assert found == ["NINO", "PENA"]
        assert missing == []

    def test_accented_name_against_another_holder(self):
        text = "PAMANTASAN NG LUNGSOD NG VALENZUELA\nANITA PEREZ\n21-1234\n"
        claim = IdentityClaim(declared_full_name="Niño Peña", student_id="21-1234")

        info = extract_identity(text, claim)

        assert info.matches.student_id is True
        assert info.matches.name is False
        assert info.missing_name_parts == ["NINO", "PENA"]


class TestConcatenatedEmailName:

    @pytest.fixture
    def claim(self):
        return IdentityClaim(email="josephvenedicttillo@plv.edu.ph", student_id="21-5678")

    def test_two_components_match(self, extractor, claim):
        text = "PAMANTASAN NG LUNGSOD NG VALENZUELA\nVENEDICT TILLO\n21-5678"

        info = extractor.extract(text, claim)

        assert info.matches.name is True
        assert info.name_source is NameSource.EMAIL_DERIVED
        assert info.matched_name_parts == ["VENEDICT", "TILLO"]

    def test_similar_first_name_counts(self, extractor):
        components = extractor.find_concatenated_components("JOSELITO TILLO", "JOSEPHVENEDICTTILLO")

        assert components == ["JOSELITO", "TILLO"]

    def test_single_component_is_not_enough(self, extractor, claim):
        info = extractor.extract("PAMANTASAN TILLO 21-5678", claim)

        assert info.matches.name is False

    def test_repeated_word_counts_once(self, extractor, claim):
        info = extractor.extract("TILLO TILLO 21-5678", claim)

        assert info.matches.name is False

    def test_denylisted_words_are_skipped(self, extractor):
        components = extractor.find_concatenated_components(
            "CITY PROPERTY VENEDICT", "PROPERTYCITYVENEDICT")

        assert components == ["VENEDICT"]


# ---------------------------------------------------------------------------
# Whole extraction
# ---------------------------------------------------------------------------


class TestExtract:

    def test_full_card(self, claim):
        info = extract_identity(ID_CARD_TEXT, claim)

        assert info.student_id == "21-1234"
        assert info.name == "Juan Dela Cruz"
        assert info.institution == "PAMANTASAN"
        assert info.matches.to_dict() == {"student_id": True, "name": True, "institution": True}

    def test_empty_text(self, claim):
        info = extract_identity("", claim)

        assert info.matches.to_dict() == {"student_id": False, "name": False, "institution": False}
        assert info.name_source is NameSource.EMAIL_DERIVED

    def test_garbage_text_never_raises(self, claim):
        info = extract_identity("@@@ ### \x00 ~~~", claim)

        assert info.student_id is None
        assert info.matches.name is False

    def test_declared_name_when_no_email(self):
        claim = IdentityClaim(declared_full_name="Juan Dela Cruz", student_id="21-1234")

        info = extract_identity(ID_CARD_TEXT, claim)

        assert info.matches.name is True
        assert info.name_source is NameSource.CLAIM_NAME

    def test_name_skipped_without_source(self):
        info = extract_identity(ID_CARD_TEXT, IdentityClaim(student_id="21-1234"))

        assert info.name_source is None
        assert info.matches.name is False
        assert info.matches.student_id is True
