"""
Progress events emitted by the bulk scrapers.

Scrapers are generators of ScrapeProgress; whoever drives them (an admin
background job, a CLI script, a test) decides what to do with each event.
"""

from typing import Optional, List, Dict, Literal

from pydantic import BaseModel, Field


ScrapeStatus = Literal["started", "running", "completed", "cancelled"]
ItemOutcome = Literal["successful", "failed", "skipped"]


class ScrapeProgress(BaseModel):
    status: ScrapeStatus
    total: int
    completed: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    current_item: Optional[str] = None
    outcome: Optional[ItemOutcome] = None
    message: Optional[str] = None
    errors: List[Dict[str, str]] = Field(default_factory=list)

    @property
    def progress_percent(self) -> float:
        return round(self.completed / self.total * 100, 1) if self.total else 100.0

    @property
    def is_final(self) -> bool:
        return self.status in ("completed", "cancelled")
