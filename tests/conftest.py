from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pytest

from dependency_bumper.config import AppConfig
from dependency_bumper.error_handling import RepoOperationError, TransportError
from dependency_bumper.logging import close_logging
from dependency_bumper.manifest import ManifestPatcher
from dependency_bumper.models import Credentials, RepositoryDescriptor
from dependency_bumper.orchestrator import RunContext
from dependency_bumper.repository import RepositoryManager

CONFIG_ENV_VARS = [
    "BITBUCKET_API_URL", "BITBUCKET_TIMEOUT", "BITBUCKET_MAX_RETRIES", "BITBUCKET_PAGE_LENGTH",
    "BITBUCKET_ROLE", "BB_NDU_SCRATCH_DIR", "BB_NDU_GIT_REMOTE", "BB_NDU_EMBED_CREDENTIALS",
    "BB_NDU_AUTHOR_NAME", "BB_NDU_AUTHOR_EMAIL", "BB_NDU_COMMIT_MESSAGE", "BB_NDU_MANIFEST",
    "BB_NDU_MANIFEST_INDENT", "BB_NDU_CREDENTIALS_FILE", "LOG_LEVEL", "LOG_FILE", "LOG_FORMAT",
    "LOG_MAX_SIZE", "LOG_BACKUP_COUNT", "LOG_STRUCTURED",
]


def make_descriptor(slug: str, workspace: str = "acme") -> RepositoryDescriptor:
    return RepositoryDescriptor(
        slug=slug,
        full_name=f"{workspace}/{slug}",
        clone_url=f"https://bitbucket.org/{workspace}/{slug}.git",
    )


def write_manifest(directory: Path, manifest: dict, filename: str = "package.json") -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")
    return path


class FakeDirectoryClient:
    """In-memory stand-in for the Bitbucket client."""

    def __init__(
        self,
        repositories: List[RepositoryDescriptor],
        branches: Dict[str, Iterable[str]],
        failing_queries: Iterable[str] = (),
        list_error: Optional[Exception] = None,
    ) -> None:
        self.repositories = repositories
        self.branches = {name: set(values) for name, values in branches.items()}
        self.failing_queries = set(failing_queries)
        self.list_error = list_error
        self.queries: List[tuple] = []

    def list_repositories(self, identity: str, secret: str) -> List[RepositoryDescriptor]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.repositories)

    def branch_exists(self, identity: str, secret: str, repo_full_name: str, branch_name: str) -> bool:
        self.queries.append((identity, secret, repo_full_name, branch_name))
        if repo_full_name in self.failing_queries:
            raise TransportError(f"connection reset while querying {repo_full_name}")
        return branch_name in self.branches.get(repo_full_name, set())


class FakeRepositoryManager(RepositoryManager):
    """Repository manager whose clones are written from in-memory manifests."""

    def __init__(
        self,
        scratch_dir: Path,
        manifests: Dict[str, Optional[str]],
        failing_clones: Iterable[str] = (),
        failing_pushes: Iterable[str] = (),
        crashing_clones: Iterable[str] = (),
    ) -> None:
        super().__init__(scratch_dir)
        self.manifests = manifests
        self.failing_clones = set(failing_clones)
        self.failing_pushes = set(failing_pushes)
        self.crashing_clones = set(crashing_clones)
        self.cloned: List[str] = []
        self.checkouts: List[tuple] = []
        self.commits: List[tuple] = []
        self.pushes: List[tuple] = []
        self.seen_workspace_during_run = False

    def clone(self, repository: RepositoryDescriptor) -> Path:
        self.seen_workspace_during_run = self.local_path(repository).parent.is_dir()
        if repository.full_name in self.failing_clones:
            raise RepoOperationError(
                f"Git clone failed for {repository.full_name}",
                repository=repository.full_name,
                operation="clone",
            )
        if repository.full_name in self.crashing_clones:
            raise RuntimeError("disk on fire")

        local_path = self.local_path(repository)
        local_path.mkdir(parents=True)
        content = self.manifests.get(repository.full_name)
        if content is not None:
            (local_path / "package.json").write_text(content, encoding="utf-8")
        self.cloned.append(repository.full_name)
        return local_path

    def checkout(self, repository: RepositoryDescriptor, branch: str) -> None:
        self.checkouts.append((repository.full_name, branch))

    def commit_all(self, repository: RepositoryDescriptor, message: str) -> str:
        manifest = (self.local_path(repository) / "package.json").read_text(encoding="utf-8")
        self.commits.append((repository.full_name, message, manifest))
        return "0" * 40

    def push(self, repository: RepositoryDescriptor, branch: str) -> None:
        if repository.full_name in self.failing_pushes:
            raise RepoOperationError(
                f"Remote rejected push of '{branch}' for {repository.full_name}",
                repository=repository.full_name,
                operation="push",
            )
        self.pushes.append((repository.full_name, branch))


def build_context(
    tmp_path: Path,
    directory_client: FakeDirectoryClient,
    repository_manager: RepositoryManager,
    credentials: Optional[Credentials] = None,
) -> RunContext:
    config = AppConfig()
    config.workspace.scratch_dir = str(repository_manager.scratch_dir)
    config.credentials.file = str(tmp_path / "credentials.json")
    return RunContext(
        config=config,
        credentials=credentials or Credentials(identity="alice", secret="app-pass"),
        directory_client=directory_client,
        repository_manager=repository_manager,
        patcher=ManifestPatcher(config.manifest),
    )


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    close_logging()


@pytest.fixture
def scratch_dir(tmp_path: Path) -> Path:
    return tmp_path / "temp-clones"
