"""
Repository manager for cloning, committing and pushing Bitbucket repositories.
"""

import shutil
import tempfile
import logging
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import urlsplit, urlunsplit, quote
from git import Repo, Actor, GitCommandError, PushInfo

from ..config import GitConfig
from ..error_handling import RepoOperationError
from ..models import Credentials, RepositoryDescriptor

logger = logging.getLogger(__name__)

_PUSH_FAILURE_FLAGS = (
    PushInfo.ERROR | PushInfo.REJECTED | PushInfo.REMOTE_REJECTED | PushInfo.REMOTE_FAILURE
)


class RepositoryManager:
    """
    Manages the scratch workspace and the git working copies inside it.

    Each run gets its own ``bb-ndu-*`` directory below the configured scratch
    directory, and every repository is cloned into a subdirectory of it
    named after the repository slug. ``cleanup_workspace`` removes only the
    directories this manager created.
    """

    def __init__(
        self,
        scratch_dir: Union[str, Path],
        git_config: Optional[GitConfig] = None,
        credentials: Optional[Credentials] = None
    ):
        """
        Initialize repository manager.

        Args:
            scratch_dir: Directory below which the run workspace is created
            git_config: Git configuration (remote name, author, auth)
            credentials: Credentials embedded in HTTPS clone URLs
        """
        self.scratch_dir = Path(scratch_dir)
        self.git_config = git_config or GitConfig()
        self.credentials = credentials or Credentials()
        self.workspace_dir: Optional[Path] = None

        # Directories created by this manager, removed in reverse order on cleanup
        self._temp_directories: List[Path] = []

    def prepare_workspace(self) -> Path:
        """
        Create a fresh workspace directory for this run.

        Returns:
            Path of the run workspace

        Raises:
            RepoOperationError: If the workspace cannot be created
        """
        if self.workspace_dir is not None:
            return self.workspace_dir

        try:
            if not self.scratch_dir.exists():
                self.scratch_dir.mkdir(parents=True)
                self._temp_directories.append(self.scratch_dir)
            self.workspace_dir = Path(tempfile.mkdtemp(prefix="bb-ndu-", dir=str(self.scratch_dir)))
        except OSError as e:
            raise RepoOperationError(
                f"Cannot create scratch workspace in {self.scratch_dir}: {e}",
                operation="prepare",
                cause=e
            )

        self._temp_directories.append(self.workspace_dir)
        logger.debug(f"Scratch workspace ready at {self.workspace_dir}")
        return self.workspace_dir

    def local_path(self, repository: RepositoryDescriptor) -> Path:
        """Get the working copy directory for a repository."""
        if self.workspace_dir is None:
            raise RepoOperationError(
                "Scratch workspace has not been prepared",
                repository=repository.full_name
            )
        return self.workspace_dir / repository.slug

    def clone(self, repository: RepositoryDescriptor) -> Path:
        """
        Clone a repository into the scratch workspace.

        Args:
            repository: Repository to clone

        Returns:
            Path of the working copy

        Raises:
            RepoOperationError: If cloning fails
        """
        local_path = self.local_path(repository)

        if local_path.exists():
            logger.info(f"Removing existing repository directory: {local_path}")
            shutil.rmtree(local_path)

        logger.info(f"Cloning {repository.slug} into {local_path}")
        try:
            Repo.clone_from(self._authenticated_url(repository.clone_url), local_path)
        except GitCommandError as e:
            raise RepoOperationError(
                f"Git clone failed for {repository.full_name}: {self._redact(str(e))}",
                repository=repository.full_name,
                operation="clone"
            )

        return local_path

    def checkout(self, repository: RepositoryDescriptor, branch: str) -> None:
        """
        Check out a branch in a cloned repository.

        Raises:
            RepoOperationError: If the branch cannot be checked out
        """
        try:
            git_repo = self._open(repository)
            git_repo.git.checkout(branch)
            logger.debug(f"Checked out {branch} in {repository.full_name}")
        except GitCommandError as e:
            raise RepoOperationError(
                f"Checkout of '{branch}' failed for {repository.full_name}: {self._redact(str(e))}",
                repository=repository.full_name,
                operation="checkout"
            )

    def commit_all(self, repository: RepositoryDescriptor, message: str) -> str:
        """
        Stage every change in the working copy and commit it.

        Args:
            repository: Repository whose working copy is committed
            message: Commit message

        Returns:
            SHA of the new commit

        Raises:
            RepoOperationError: If there is nothing to commit or the commit fails
        """
        try:
            git_repo = self._open(repository)
            git_repo.git.add(A=True)

            if not git_repo.index.diff("HEAD"):
                raise RepoOperationError(
                    f"Nothing to commit in {repository.full_name}",
                    repository=repository.full_name,
                    operation="commit"
                )

            author = self._author()
            commit = git_repo.index.commit(message, author=author, committer=author)
            logger.debug(f"Committed {commit.hexsha[:8]} in {repository.full_name}")
            return commit.hexsha
        except GitCommandError as e:
            raise RepoOperationError(
                f"Commit failed for {repository.full_name}: {self._redact(str(e))}",
                repository=repository.full_name,
                operation="commit"
            )

    def push(self, repository: RepositoryDescriptor, branch: str) -> None:
        """
        Push a branch to the configured remote.

        Raises:
            RepoOperationError: If the remote rejects the push or git fails
        """
        refspec = f"refs/heads/{branch}:refs/heads/{branch}"
        try:
            git_repo = self._open(repository)
            remote = git_repo.remote(self.git_config.remote)
            push_infos = remote.push(refspec=refspec)
        except (GitCommandError, ValueError) as e:
            raise RepoOperationError(
                f"Push of '{branch}' failed for {repository.full_name}: {self._redact(str(e))}",
                repository=repository.full_name,
                operation="push"
            )

        if not push_infos:
            raise RepoOperationError(
                f"Push of '{branch}' for {repository.full_name} reported no result",
                repository=repository.full_name,
                operation="push"
            )

        for info in push_infos:
            if info.flags & _PUSH_FAILURE_FLAGS:
                raise RepoOperationError(
                    f"Remote rejected push of '{branch}' for {repository.full_name}: "
                    f"{self._redact(info.summary.strip())}",
                    repository=repository.full_name,
                    operation="push"
                )

        logger.debug(f"Pushed {branch} to {self.git_config.remote} for {repository.full_name}")

    def cleanup_workspace(self) -> bool:
        """
        Remove the run workspace and every working copy in it.

        The configured scratch directory is removed too when this manager
        created it and it is empty afterwards.

        Returns:
            True if the run workspace no longer exists
        """
        if self.workspace_dir is not None:
            try:
                shutil.rmtree(self.workspace_dir)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.error(f"Failed to remove scratch workspace {self.workspace_dir}: {e}")
                return False
            logger.debug(f"Removed scratch workspace {self.workspace_dir}")
            self._temp_directories.remove(self.workspace_dir)
            self.workspace_dir = None

        for directory in reversed(self._temp_directories.copy()):
            # Only ever removed when empty
            try:
                directory.rmdir()
            except FileNotFoundError:
                pass
            except OSError:
                logger.debug(f"Keeping non-empty scratch directory {directory}")
            self._temp_directories.remove(directory)

        return True

    def _open(self, repository: RepositoryDescriptor) -> Repo:
        local_path = self.local_path(repository)
        if not local_path.exists():
            raise RepoOperationError(
                f"Repository {repository.full_name} is not cloned",
                repository=repository.full_name
            )
        return Repo(local_path)

    def _author(self) -> Optional[Actor]:
        """Get the configured commit author, or None to use git's own configuration."""
        if self.git_config.author_name and self.git_config.author_email:
            return Actor(self.git_config.author_name, self.git_config.author_email)
        return None

    def _authenticated_url(self, clone_url: str) -> str:
        """
        Embed the credentials into an HTTPS clone URL.

        SSH URLs and local paths are returned unchanged, as is everything when
        credential embedding is disabled or credentials are incomplete.
        """
        if not self.git_config.embed_credentials or not self.credentials.is_complete():
            return clone_url

        parts = urlsplit(clone_url)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            return clone_url

        userinfo = f"{quote(self.credentials.identity, safe='')}:{quote(self.credentials.secret, safe='')}"
        host = parts.hostname
        if parts.port:
            host = f"{host}:{parts.port}"
        return urlunsplit((parts.scheme, f"{userinfo}@{host}", parts.path, parts.query, parts.fragment))

    def _redact(self, text: str) -> str:
        """Hide the secret in git output before it is logged or raised."""
        secret = self.credentials.secret
        if not secret:
            return text
        for candidate in {secret, quote(secret, safe='')}:
            text = text.replace(candidate, '*' * 8)
        return text

