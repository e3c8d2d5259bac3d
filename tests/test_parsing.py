"""Tests for requirement hashing and AI response decoding.

These tests verify:
- Content hash normalization (case, whitespace) and stability
- Priority normalization defaults
- Text windowing for long documents
- Parsing of raw, fenced and chatty JSON responses
"""

import pytest

from redyce.extraction import (
    ResponseParseError,
    generate_requirement_hash,
    normalize_priority,
    normalize_title,
    parse_requirements_response,
    window_text,
)
from redyce.extraction.parsing import OMISSION_MARKER
from redyce.models import RequirementPriority


class TestRequirementHash:
    """Test generate_requirement_hash and normalize_title."""

    def test_normalize_title(self):
        assert normalize_title("  Délai   de\tLIVRAISON \n") == "délai de livraison"

    def test_hash_ignores_case_and_whitespace(self):
        """Titles differing only by case or spacing share a fingerprint."""
        first = generate_requirement_hash("p1", "d1", "Délai de livraison")
        second = generate_requirement_hash("p1", "d1", "  délai   DE livraison ")

        assert first == second
        assert len(first) == 32

    def test_hash_changes_with_wording(self):
        assert generate_requirement_hash("p1", "d1", "Délai de livraison") != generate_requirement_hash(
            "p1", "d1", "Délais de livraison"
        )

    def test_hash_scoped_to_project_and_document(self):
        base = generate_requirement_hash("p1", "d1", "Foo")

        assert generate_requirement_hash("p2", "d1", "Foo") != base
        assert generate_requirement_hash("p1", "d2", "Foo") != base

    def test_hash_is_hex_prefix_of_sha256(self):
        import hashlib

        expected = hashlib.sha256("p1|d1|foo".encode("utf-8")).hexdigest()[:32]
        assert generate_requirement_hash("p1", "d1", "FOO") == expected


class TestNormalizePriority:
    """Test normalize_priority mapping."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("HIGH", RequirementPriority.HIGH),
            ("high", RequirementPriority.HIGH),
            ("MED", RequirementPriority.MED),
            ("medium", RequirementPriority.MED),
            ("LOW", RequirementPriority.LOW),
            ("urgent", RequirementPriority.LOW),
            ("", RequirementPriority.LOW),
            (None, RequirementPriority.LOW),
        ],
    )
    def test_mapping(self, value, expected):
        assert normalize_priority(value) == expected


class TestWindowText:
    """Test window_text bounding."""

    def test_short_text_unchanged(self):
        text = "a" * 30000
        assert window_text(text) == text

    def test_long_text_keeps_head_and_tail(self):
        text = "h" * 20000 + "x" * 10000 + "t" * 20000

        windowed = window_text(text)

        assert windowed == "h" * 15000 + OMISSION_MARKER + "t" * 15000
        assert "x" not in windowed

    def test_custom_bounds(self):
        assert window_text("abcdefghij", max_length=6, edge_length=2) == f"ab{OMISSION_MARKER}ij"


class TestParseRequirementsResponse:
    """Test parse_requirements_response decoding and validation."""

    def test_plain_json(self):
        requirements = parse_requirements_response('{"requirements":[{"title":"Foo","description":"Bar"}]}')

        assert len(requirements) == 1
        assert requirements[0].title == "Foo"
        assert requirements[0].description == "Bar"
        assert requirements[0].priority is None
        assert requirements[0].code is None

    def test_camel_case_fields(self):
        content = """{"requirements": [{
            "code": "Art. 3.2", "title": "Pénalités", "description": "500 euros par jour",
            "category": "délai", "priority": "HIGH", "sourceQuote": "500 euros", "sourcePage": "p. 12"
        }]}"""

        requirement = parse_requirements_response(content)[0]

        assert requirement.code == "Art. 3.2"
        assert requirement.category == "délai"
        assert requirement.priority == "HIGH"
        assert requirement.source_quote == "500 euros"
        assert requirement.source_page == 12

    def test_unreadable_page_is_dropped(self):
        content = '{"requirements":[{"title":"Foo","description":"Bar","sourcePage":"non précisé"}]}'
        assert parse_requirements_response(content)[0].source_page is None

    def test_code_fence_is_stripped(self):
        content = '```json\n{"requirements":[{"title":"Foo","description":"Bar"}]}\n```'
        assert parse_requirements_response(content)[0].title == "Foo"

    def test_json_embedded_in_prose(self):
        content = 'Voici les exigences : {"requirements":[{"title":"Foo","description":"Bar"}]} Bonne journée.'
        assert parse_requirements_response(content)[0].title == "Foo"

    def test_empty_requirements(self):
        assert parse_requirements_response('{"requirements": []}') == []
        assert parse_requirements_response("{}") == []

    def test_no_json_raises(self):
        with pytest.raises(ResponseParseError, match="Failed to parse requirements from AI response"):
            parse_requirements_response("Je ne peux pas répondre.")

    def test_broken_json_raises(self):
        with pytest.raises(ResponseParseError):
            parse_requirements_response('{"requirements": [{"title": "Foo",}')

    def test_missing_description_raises(self):
        with pytest.raises(ResponseParseError, match="description"):
            parse_requirements_response('{"requirements":[{"title":"Foo"}]}')

    def test_blank_title_raises(self):
        with pytest.raises(ResponseParseError):
            parse_requirements_response('{"requirements":[{"title":"  ","description":"Bar"}]}')

    def test_requirements_not_a_list_raises(self):
        with pytest.raises(ResponseParseError):
            parse_requirements_response('{"requirements": "none"}')
