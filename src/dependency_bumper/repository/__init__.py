"""
Repository components for Bitbucket API access and git working copies.
"""

from .bitbucket_client import BitbucketClient
from .repository_manager import RepositoryManager

__all__ = [
    "BitbucketClient",
    "RepositoryManager"
]
