"""Decoding of AI extraction responses and requirement field normalization."""

import json
import re
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..models import RequirementPriority

OMISSION_MARKER = "\n\n[... contenu omis ...]\n\n"

_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*\n(.*)\n\s*```$", re.DOTALL)
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_PAGE_NUMBER = re.compile(r"\d+")


class ResponseParseError(Exception):
    """Raised when an AI response does not match the extraction contract."""

    pass


class ExtractedRequirement(BaseModel):
    """One requirement candidate as returned by the model."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str
    description: str
    code: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None
    source_page: Optional[int] = Field(default=None, alias="sourcePage")
    source_quote: Optional[str] = Field(default=None, alias="sourceQuote")

    @field_validator("title", "description")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("code", "category", "priority", "source_quote", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("source_page", mode="before")
    @classmethod
    def _page_number(cls, value: Any) -> Optional[int]:
        # Models answer 12, "12", "p. 12" or "non précisé"
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value if value > 0 else None
        match = _PAGE_NUMBER.search(str(value))
        return int(match.group(0)) if match else None


class RequirementExtractionPayload(BaseModel):
    """Top-level shape of the extraction response."""

    model_config = ConfigDict(extra="ignore")

    requirements: List[ExtractedRequirement] = Field(default_factory=list)


def _strip_code_fence(content: str) -> str:
    match = _CODE_FENCE.match(content)
    return match.group(1) if match else content


def parse_requirements_response(content: str) -> List[ExtractedRequirement]:
    """
    Decode the model output into validated requirement candidates.

    The whole content is parsed as JSON first; if that fails, the outermost
    {...} substring is parsed instead. The decoded value must then match
    RequirementExtractionPayload.

    Args:
        content: Raw completion text.

    Returns:
        Validated requirement candidates, possibly empty.

    Raises:
        ResponseParseError: If no valid JSON object matching the contract is found.
    """
    text = _strip_code_fence(content.strip())

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(text)
        if match is None:
            raise ResponseParseError("Failed to parse requirements from AI response: no JSON found in response")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ResponseParseError(f"Failed to parse requirements from AI response: {e}") from e

    try:
        payload = RequirementExtractionPayload.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'response'}: {error['msg']}"
            for error in e.errors()
        )
        raise ResponseParseError(f"Failed to parse requirements from AI response: {problems}") from e

    return payload.requirements


def normalize_priority(priority: Optional[str]) -> RequirementPriority:
    """Map a free-form priority to LOW/MED/HIGH, defaulting to LOW."""
    if not priority:
        return RequirementPriority.LOW
    upper = priority.upper()
    if upper == "HIGH":
        return RequirementPriority.HIGH
    if upper in ("MED", "MEDIUM"):
        return RequirementPriority.MED
    return RequirementPriority.LOW


def window_text(text: str, max_length: int = 30000, edge_length: int = 15000) -> str:
    """Bound the text sent to the model, keeping its head and tail."""
    if len(text) <= max_length:
        return text
    return f"{text[:edge_length]}{OMISSION_MARKER}{text[-edge_length:]}"
