"""AI completion models."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AIPrompt:
    """Prompt sent to the completion client."""

    user: str
    system: Optional[str] = None


@dataclass(frozen=True)
class CompletionMetadata:
    """Model and token usage of a completion."""

    model: str
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    finish_reason: Optional[str] = None


@dataclass(frozen=True)
class AICompletion:
    """Generated text plus usage metadata."""

    content: str
    metadata: CompletionMetadata
