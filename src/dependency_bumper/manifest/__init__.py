"""
Manifest handling for dependency version updates.
"""

from .patcher import ManifestPatcher, DEPENDENCY_SECTION

__all__ = [
    "ManifestPatcher",
    "DEPENDENCY_SECTION"
]
