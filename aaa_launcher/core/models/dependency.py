"""
Dependency records — the output of one audit pass.

Records are rebuilt on every audit and never persisted: the
environment may change between runs.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel


class DependencyRecord(BaseModel):
    """Detection result for one required toolchain or SDK."""

    name: str
    installed: bool = False
    version: str | None = None
    location: Path | None = None
    source: str = ""  # which probe strategy matched

    @classmethod
    def missing(cls, name: str) -> DependencyRecord:
        return cls(name=name, installed=False)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")
