"""
Data models for dependency update runs and their per-repository outcomes.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any
from datetime import datetime
from enum import Enum

from .repository import RepositoryDescriptor


class PatchStatus(Enum):
    """Result of applying the manifest patcher to a working copy."""
    APPLIED = "applied"
    NOT_APPLICABLE = "not_applicable"
    PARSE_ERROR = "parse_error"


class RepositoryOutcome(Enum):
    """Terminal state of one repository in an update run."""
    UPDATED = "updated"
    SKIPPED = "skipped"
    NOT_APPLICABLE = "not_applicable"
    FAILED = "failed"


@dataclass
class UpdateParameters:
    """Branch, library and target version for an update run."""
    branch: str
    library: str
    version: str

    def to_dict(self) -> Dict[str, Any]:
        return {"branch": self.branch, "library": self.library, "version": self.version}


@dataclass
class PatchOutcome:
    """What the manifest patcher did to one manifest file."""
    status: PatchStatus
    manifest_path: str
    previous_version: Optional[str] = None
    reason: Optional[str] = None


@dataclass
class RepositoryReport:
    """Outcome of processing a single repository."""
    repository: RepositoryDescriptor
    outcome: RepositoryOutcome
    message: str = ""
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "repository": self.repository.full_name,
            "outcome": self.outcome.value,
            "message": self.message,
            "error": self.error
        }


@dataclass
class BatchReport:
    """Aggregated results of an update run across all repositories."""
    parameters: UpdateParameters
    reports: List[RepositoryReport] = field(default_factory=list)
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    dry_run: bool = False

    def add(self, report: RepositoryReport) -> None:
        self.reports.append(report)

    def finish(self) -> None:
        self.end_time = datetime.now()

    def by_outcome(self, outcome: RepositoryOutcome) -> List[RepositoryReport]:
        """Get the reports that reached the given terminal state."""
        return [report for report in self.reports if report.outcome is outcome]

    def outcome_for(self, full_name: str) -> Optional[RepositoryOutcome]:
        """Get the terminal state reached by the named repository."""
        for report in self.reports:
            if report.repository.full_name == full_name:
                return report.outcome
        return None

    @property
    def counts(self) -> Dict[str, int]:
        return {outcome.value: len(self.by_outcome(outcome)) for outcome in RepositoryOutcome}

    @property
    def has_failures(self) -> bool:
        return any(report.outcome is RepositoryOutcome.FAILED for report in self.reports)

    @property
    def duration(self) -> float:
        """Get run duration in seconds."""
        end = self.end_time or datetime.now()
        return (end - self.start_time).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "parameters": self.parameters.to_dict(),
            "dry_run": self.dry_run,
            "counts": self.counts,
            "repositories": [report.to_dict() for report in self.reports],
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_seconds": round(self.duration, 3)
        }
