"""
Data models for the dependency bumper.
"""

from .credentials import Credentials
from .repository import RepositoryDescriptor
from .update import (
    PatchStatus, PatchOutcome, RepositoryOutcome, RepositoryReport,
    BatchReport, UpdateParameters
)

__all__ = [
    "Credentials",
    "RepositoryDescriptor",
    "PatchStatus",
    "PatchOutcome",
    "RepositoryOutcome",
    "RepositoryReport",
    "BatchReport",
    "UpdateParameters"
]
