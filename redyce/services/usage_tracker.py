"""Token usage tracking for cost attribution."""

import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from ..clients import SqliteClient
from ..models import UsageRecord

logger = logging.getLogger(__name__)

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS ai_usage (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    model TEXT NOT NULL,
    input_tokens INTEGER NOT NULL,
    output_tokens INTEGER NOT NULL,
    total_tokens INTEGER NOT NULL,
    cost REAL NOT NULL,
    operation TEXT NOT NULL,
    project_id TEXT,
    document_id TEXT,
    created_at TEXT NOT NULL
)
"""

# USD per token
PRICING: Dict[str, Dict[str, float]] = {
    "gpt-4o-mini": {"input": 0.00015 / 1000, "output": 0.0006 / 1000},
    "gpt-4o": {"input": 0.005 / 1000, "output": 0.015 / 1000},
    "gpt-4-turbo-preview": {"input": 0.01 / 1000, "output": 0.03 / 1000},
    "gpt-3.5-turbo": {"input": 0.0005 / 1000, "output": 0.0015 / 1000},
}
DEFAULT_PRICING_MODEL = "gpt-4o-mini"


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """Estimate the cost of a call.

    Dated model names ("gpt-4o-mini-2024-07-18") are priced as their base
    model; unknown models are priced as gpt-4o-mini.
    """
    pricing = PRICING[DEFAULT_PRICING_MODEL]
    for name in sorted(PRICING, key=len, reverse=True):
        if model.startswith(name):
            pricing = PRICING[name]
            break
    return input_tokens * pricing["input"] + output_tokens * pricing["output"]


class UsageTracker:
    """Records AI token usage. Never raises to the caller."""

    def __init__(self, sqlite_client: SqliteClient):
        self._sqlite_client = sqlite_client
        self._sqlite_client.execute_query(CREATE_TABLE_SQL)

    def record_usage(
        self,
        user_id: str,
        model: str,
        input_tokens: int,
        output_tokens: int,
        operation: str,
        project_id: Optional[str] = None,
        document_id: Optional[str] = None,
    ) -> Optional[UsageRecord]:
        """Store one usage record.

        Returns:
            The stored record, or None if storing failed.
        """
        record = UsageRecord(
            user_id=user_id,
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            cost=calculate_cost(model, input_tokens, output_tokens),
            operation=operation,
            created_at=datetime.now(timezone.utc),
            project_id=project_id,
            document_id=document_id,
        )

        try:
            self._sqlite_client.execute_query(
                """INSERT INTO ai_usage
                   (user_id, model, input_tokens, output_tokens, total_tokens, cost,
                    operation, project_id, document_id, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    record.user_id,
                    record.model,
                    record.input_tokens,
                    record.output_tokens,
                    record.total_tokens,
                    record.cost,
                    record.operation,
                    record.project_id,
                    record.document_id,
                    record.created_at.isoformat(),
                ),
            )
        except Exception as e:
            logger.error(f"Failed to record usage for {operation}: {e}")
            return None

        return record

    def total_cost(self, user_id: Optional[str] = None) -> float:
        if user_id is None:
            result = self._sqlite_client.execute_query("SELECT COALESCE(SUM(cost), 0) FROM ai_usage")
        else:
            result = self._sqlite_client.execute_query(
                "SELECT COALESCE(SUM(cost), 0) FROM ai_usage WHERE user_id = ?",
                (user_id,),
            )
        return float(result[0][0])
