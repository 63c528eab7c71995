"""
Repository data model for Bitbucket repository information.
"""

from dataclasses import dataclass, field
from typing import Dict, Any


@dataclass
class RepositoryDescriptor:
    """
    Describes a Bitbucket repository visible to the configured account.

    Descriptors are built from the repository listing returned by the
    Bitbucket API and only live for the duration of one update run.
    """

    slug: str
    full_name: str
    clone_url: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'RepositoryDescriptor':
        """
        Create a descriptor from a Bitbucket repository payload.

        The HTTPS clone link is preferred; when the payload carries no HTTPS
        link the first clone link is used.

        Args:
            data: Repository object as returned by the Bitbucket API

        Returns:
            RepositoryDescriptor instance

        Raises:
            ValueError: If the payload has no slug, full name or clone link
        """
        if not isinstance(data, dict):
            raise ValueError(f"Repository payload is not an object: {data!r}")

        slug = data.get("slug")
        full_name = data.get("full_name")
        links = data.get("links")
        clone_links = links.get("clone") if isinstance(links, dict) else None
        if not isinstance(clone_links, list):
            clone_links = []
        clone_links = [link for link in clone_links if isinstance(link, dict)]

        if not slug or not full_name:
            raise ValueError(f"Repository payload is missing slug or full_name: {data!r}")
        if not clone_links:
            raise ValueError(f"Repository {full_name} has no clone links")

        clone_url = clone_links[0].get("href", "")
        for link in clone_links:
            if link.get("name") == "https" and link.get("href"):
                clone_url = link["href"]
                break

        if not clone_url:
            raise ValueError(f"Repository {full_name} has no usable clone link")

        return cls(
            slug=slug,
            full_name=full_name,
            clone_url=clone_url,
            metadata={
                "uuid": data.get("uuid"),
                "is_private": data.get("is_private"),
                "mainbranch": (data.get("mainbranch") or {}).get("name"),
                "updated_on": data.get("updated_on")
            }
        )
