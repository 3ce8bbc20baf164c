"""Result models for test runner invocations."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TestResult(BaseModel):
    """Outcome of one test runner invocation.

    Note: Not a pytest test class - used to store test command results.
    """
    __test__ = False  # Tell pytest this is not a test class

    model_config = ConfigDict(frozen=True)

    success: bool
    output: str = Field(default="", description="Raw runner output (stdout).")
    error: Optional[str] = Field(default=None, description="Captured stderr or failure explanation.")

    @classmethod
    def timed_out(cls, timeout: float) -> "TestResult":
        message = f"Test execution timed out after {timeout:g} seconds"
        return cls(success=False, output=message, error=message)

    @classmethod
    def crashed(cls, message: str) -> "TestResult":
        return cls(success=False, output=message, error=message)


class RunHistory(BaseModel):
    """Durable log of every test runner invocation."""

    model_config = ConfigDict(populate_by_name=True)

    run_count: int = Field(default=0, alias="runCount")
    results: List[TestResult] = Field(default_factory=list)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


__all__ = ["RunHistory", "TestResult"]
