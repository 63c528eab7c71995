"""
Orchestration of batch dependency updates across Bitbucket repositories.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .models import (
    Credentials, RepositoryDescriptor, UpdateParameters, PatchStatus,
    RepositoryOutcome, RepositoryReport, BatchReport
)
from .config import AppConfig, CredentialStore
from .repository import BitbucketClient, RepositoryManager
from .manifest import ManifestPatcher
from .resolvers import ParameterResolver
from .error_handling import (
    ConfigError, DependencyBumperError, DirectoryClientError, ManifestParseError
)

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """
    Everything one update run needs, built once and passed to the orchestrator.

    Attributes:
        config: Application configuration
        credentials: Credentials loaded at the start of the run
        directory_client: Lists repositories and looks up branches
        repository_manager: Owns the scratch workspace and git working copies
        patcher: Rewrites the dependency version in a working copy
    """
    config: AppConfig
    credentials: Credentials
    directory_client: BitbucketClient
    repository_manager: RepositoryManager
    patcher: ManifestPatcher

    @classmethod
    def create(cls, config: AppConfig, credential_store: Optional[CredentialStore] = None) -> 'RunContext':
        """
        Build the context for a run from configuration and stored credentials.

        Args:
            config: Application configuration
            credential_store: Store to load credentials from (defaults to the configured file)
        """
        credential_store = credential_store or CredentialStore(config.credentials.file)
        credentials = credential_store.load()
        return cls(
            config=config,
            credentials=credentials,
            directory_client=BitbucketClient(config.bitbucket),
            repository_manager=RepositoryManager(config.workspace.scratch_dir, config.git, credentials),
            patcher=ManifestPatcher(config.manifest)
        )


class UpdateOrchestrator:
    """
    Coordinates a dependency update across every repository of an account.

    Each repository is an independent attempt: a failure while querying,
    cloning, patching, committing or pushing one repository is recorded and
    the run moves on to the next. The scratch workspace is always removed
    at the end of the run.
    """

    def __init__(self, context: RunContext):
        self.context = context

    def run(self, resolver: ParameterResolver, dry_run: bool = False) -> BatchReport:
        """
        Run the update workflow.

        Args:
            resolver: Supplies the branch, library and version
            dry_run: Patch working copies but do not commit or push

        Returns:
            BatchReport with one entry per repository

        Raises:
            ConfigError: If the credentials are incomplete
            ParameterResolutionError: If the parameters cannot be resolved
            DirectoryClientError: If the repository list cannot be fetched
        """
        credentials = self.context.credentials
        if not credentials.is_complete():
            missing = credentials.missing_fields()
            raise ConfigError(
                "You must set your identity and secret first "
                "(bb-ndu set-identity <username>, bb-ndu set-secret <app password>)",
                config_section="credentials",
                missing_fields=missing
            )

        parameters = resolver.resolve()
        report = BatchReport(parameters=parameters, dry_run=dry_run)
        manager = self.context.repository_manager

        logger.info(
            f"Updating {parameters.library} to {parameters.version} "
            f"on branch '{parameters.branch}'{' (dry run)' if dry_run else ''}"
        )

        try:
            manager.prepare_workspace()
            repositories = self.context.directory_client.list_repositories(
                credentials.identity, credentials.secret
            )
            logger.info(f"Processing {len(repositories)} repositories")

            for repository in repositories:
                repository_report = self._process_repository(repository, parameters, dry_run)
                report.add(repository_report)
        finally:
            logger.info("Cleaning up temporary files...")
            if manager.cleanup_workspace():
                logger.info("Cleanup complete.")
            report.finish()

        counts = report.counts
        logger.info(
            f"Run finished in {report.duration:.1f} seconds: "
            + ", ".join(f"{count} {outcome}" for outcome, count in counts.items()),
            extra={"report": report.to_dict()}
        )
        return report

    def _process_repository(
        self,
        repository: RepositoryDescriptor,
        parameters: UpdateParameters,
        dry_run: bool
    ) -> RepositoryReport:
        """Take one repository from branch check to its terminal state."""
        credentials = self.context.credentials

        try:
            branch_exists = self.context.directory_client.branch_exists(
                credentials.identity, credentials.secret, repository.full_name, parameters.branch
            )
        except DirectoryClientError as e:
            logger.error(f"Failed to check branch '{parameters.branch}' in {repository.full_name}: {e}")
            return RepositoryReport(repository, RepositoryOutcome.FAILED,
                                    message="branch check failed", error=str(e))

        if not branch_exists:
            logger.info(f"Branch '{parameters.branch}' doesn't exist in {repository.full_name}")
            return RepositoryReport(repository, RepositoryOutcome.SKIPPED, message="branch absent")

        try:
            return self._update_repository(repository, parameters, dry_run)
        except DependencyBumperError as e:
            logger.error(f"Error while trying to clone, checkout & update {repository.slug}: {e}")
            return RepositoryReport(repository, RepositoryOutcome.FAILED,
                                    message="update failed", error=str(e))
        except Exception as e:
            logger.exception(f"Unexpected error while updating {repository.slug}")
            return RepositoryReport(repository, RepositoryOutcome.FAILED,
                                    message="update failed", error=str(e))

    def _update_repository(
        self,
        repository: RepositoryDescriptor,
        parameters: UpdateParameters,
        dry_run: bool
    ) -> RepositoryReport:
        """Clone, check out, patch, commit and push one repository."""
        manager = self.context.repository_manager

        local_path = manager.clone(repository)
        manager.checkout(repository, parameters.branch)

        outcome = self.context.patcher.patch(local_path, parameters.library, parameters.version)

        if outcome.status is PatchStatus.PARSE_ERROR:
            raise ManifestParseError(
                f"Malformed manifest in {repository.full_name}: {outcome.reason}",
                file_path=outcome.manifest_path
            )

        if outcome.status is PatchStatus.NOT_APPLICABLE:
            logger.info(f"Nothing to update in {repository.full_name}: {outcome.reason}")
            return RepositoryReport(repository, RepositoryOutcome.NOT_APPLICABLE, message=outcome.reason or "")

        if dry_run:
            logger.info(f"Dry run: {repository.full_name} would be updated, not committing")
            return RepositoryReport(repository, RepositoryOutcome.UPDATED,
                                    message=f"dry run, {parameters.library} "
                                            f"{outcome.previous_version} -> {parameters.version}")

        logger.info("Committing and pushing changes...")
        message = self.context.config.git.commit_message.format(
            library=parameters.library, version=parameters.version
        )
        manager.commit_all(repository, message)
        manager.push(repository, parameters.branch)

        logger.info(f"Pushed changes to {parameters.branch} in {repository.slug}")
        return RepositoryReport(repository, RepositoryOutcome.UPDATED,
                                message=f"{parameters.library} {outcome.previous_version} -> {parameters.version}")
