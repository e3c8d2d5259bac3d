from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class UsageRecord:
    """Token consumption of one AI call, attributed to a user."""

    user_id: str
    model: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    cost: float  # USD
    operation: str
    created_at: datetime
    project_id: Optional[str] = None
    document_id: Optional[str] = None
