from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from dependency_bumper.error_handling import ConfigError, ParameterResolutionError, TransportError
from dependency_bumper.models import Credentials, RepositoryOutcome
from dependency_bumper.orchestrator import UpdateOrchestrator
from dependency_bumper.resolvers import ArgumentParameterResolver

from conftest import FakeDirectoryClient, FakeRepositoryManager, build_context, make_descriptor

LIB_X_1 = json.dumps({"name": "alpha", "dependencies": {"libX": "1.0.0"}}, indent=2) + "\n"
LIB_Y_1 = json.dumps({"name": "gamma", "dependencies": {"libY": "1.0.0"}}, indent=2) + "\n"


def release_libx_2() -> ArgumentParameterResolver:
    return ArgumentParameterResolver(branch="release", library="libX", version="2.0.0")


@pytest.fixture
def scenario(tmp_path: Path, scratch_dir: Path):
    """Three repositories: A has the branch and the library, B lacks the branch, C lacks the library."""
    repositories = [make_descriptor("a"), make_descriptor("b"), make_descriptor("c")]
    client = FakeDirectoryClient(
        repositories,
        branches={"acme/a": ["main", "release"], "acme/b": ["main"], "acme/c": ["main", "release"]},
    )
    manager = FakeRepositoryManager(scratch_dir, manifests={"acme/a": LIB_X_1, "acme/b": LIB_X_1, "acme/c": LIB_Y_1})
    return build_context(tmp_path, client, manager), client, manager


def test_updates_only_matching_repositories(scenario) -> None:
    context, client, manager = scenario

    report = UpdateOrchestrator(context).run(release_libx_2())

    assert report.outcome_for("acme/a") is RepositoryOutcome.UPDATED
    assert report.outcome_for("acme/b") is RepositoryOutcome.SKIPPED
    assert report.outcome_for("acme/c") is RepositoryOutcome.NOT_APPLICABLE
    assert manager.cloned == ["acme/a", "acme/c"]
    assert manager.checkouts == [("acme/a", "release"), ("acme/c", "release")]
    assert manager.pushes == [("acme/a", "release")]

    [(name, message, manifest)] = manager.commits
    assert name == "acme/a"
    assert message == "Update libX to version 2.0.0 (scripted update)"
    assert json.loads(manifest) == {"name": "alpha", "dependencies": {"libX": "2.0.0"}}


def test_queries_every_repository_with_stored_credentials(scenario) -> None:
    context, client, _ = scenario

    UpdateOrchestrator(context).run(release_libx_2())

    assert client.queries == [
        ("alice", "app-pass", "acme/a", "release"),
        ("alice", "app-pass", "acme/b", "release"),
        ("alice", "app-pass", "acme/c", "release"),
    ]


def test_workspace_exists_during_run_and_is_removed_after(scenario, scratch_dir: Path) -> None:
    context, _, manager = scenario

    report = UpdateOrchestrator(context).run(release_libx_2())

    assert manager.seen_workspace_during_run
    assert not scratch_dir.exists()
    assert report.end_time is not None
    assert report.counts == {"updated": 1, "skipped": 1, "not_applicable": 1, "failed": 0}


def test_logs_skipped_branch(scenario, caplog: pytest.LogCaptureFixture) -> None:
    context, _, _ = scenario

    with caplog.at_level(logging.INFO, logger="dependency_bumper"):
        UpdateOrchestrator(context).run(release_libx_2())

    assert "Branch 'release' doesn't exist in acme/b" in caplog.text


def test_failures_are_isolated_per_repository(tmp_path: Path, scratch_dir: Path) -> None:
    names = ["query", "clone", "crash", "push", "ok"]
    repositories = [make_descriptor(name) for name in names]
    client = FakeDirectoryClient(
        repositories,
        branches={f"acme/{name}": ["release"] for name in names},
        failing_queries=["acme/query"],
    )
    manager = FakeRepositoryManager(
        scratch_dir,
        manifests={f"acme/{name}": LIB_X_1 for name in names},
        failing_clones=["acme/clone"],
        crashing_clones=["acme/crash"],
        failing_pushes=["acme/push"],
    )

    report = UpdateOrchestrator(build_context(tmp_path, client, manager)).run(release_libx_2())

    assert [r.outcome for r in report.reports] == [
        RepositoryOutcome.FAILED,
        RepositoryOutcome.FAILED,
        RepositoryOutcome.FAILED,
        RepositoryOutcome.FAILED,
        RepositoryOutcome.UPDATED,
    ]
    errors = {r.repository.full_name: r.error for r in report.reports}
    assert "connection reset" in errors["acme/query"]
    assert "clone failed" in errors["acme/clone"]
    assert errors["acme/crash"] == "disk on fire"
    assert "rejected push" in errors["acme/push"]
    assert manager.pushes == [("acme/ok", "release")]
    assert report.has_failures
    assert not scratch_dir.exists()


def test_malformed_manifest_fails_that_repository(tmp_path: Path, scratch_dir: Path) -> None:
    repositories = [make_descriptor("broken"), make_descriptor("fine")]
    client = FakeDirectoryClient(repositories, branches={"acme/broken": ["release"], "acme/fine": ["release"]})
    manager = FakeRepositoryManager(scratch_dir, manifests={"acme/broken": "{ not json", "acme/fine": LIB_X_1})

    report = UpdateOrchestrator(build_context(tmp_path, client, manager)).run(release_libx_2())

    assert report.outcome_for("acme/broken") is RepositoryOutcome.FAILED
    assert "Malformed manifest" in report.reports[0].error
    assert report.outcome_for("acme/fine") is RepositoryOutcome.UPDATED
    assert [name for name, _, _ in manager.commits] == ["acme/fine"]


def test_repository_without_manifest_is_not_applicable(tmp_path: Path, scratch_dir: Path) -> None:
    client = FakeDirectoryClient([make_descriptor("docs")], branches={"acme/docs": ["release"]})
    manager = FakeRepositoryManager(scratch_dir, manifests={"acme/docs": None})

    report = UpdateOrchestrator(build_context(tmp_path, client, manager)).run(release_libx_2())

    assert report.outcome_for("acme/docs") is RepositoryOutcome.NOT_APPLICABLE
    assert manager.commits == []


def test_dependency_already_at_target_version_is_not_committed(tmp_path: Path, scratch_dir: Path) -> None:
    current = json.dumps({"dependencies": {"libX": "2.0.0"}}, indent=2) + "\n"
    client = FakeDirectoryClient([make_descriptor("a")], branches={"acme/a": ["release"]})
    manager = FakeRepositoryManager(scratch_dir, manifests={"acme/a": current})

    report = UpdateOrchestrator(build_context(tmp_path, client, manager)).run(release_libx_2())

    assert report.outcome_for("acme/a") is RepositoryOutcome.NOT_APPLICABLE
    assert manager.commits == []
    assert manager.pushes == []


def test_dry_run_patches_without_committing(scenario, scratch_dir: Path) -> None:
    context, _, manager = scenario

    report = UpdateOrchestrator(context).run(release_libx_2(), dry_run=True)

    assert report.dry_run
    assert report.outcome_for("acme/a") is RepositoryOutcome.UPDATED
    assert "dry run" in report.reports[0].message
    assert manager.commits == []
    assert manager.pushes == []
    assert not scratch_dir.exists()


def test_custom_commit_message_template(scenario) -> None:
    context, _, manager = scenario
    context.config.git.commit_message = "chore(deps): {library}@{version}"

    UpdateOrchestrator(context).run(release_libx_2())

    assert manager.commits[0][1] == "chore(deps): libX@2.0.0"


def test_listing_failure_still_cleans_up(tmp_path: Path, scratch_dir: Path) -> None:
    client = FakeDirectoryClient([], branches={}, list_error=TransportError("Bitbucket unreachable"))
    manager = FakeRepositoryManager(scratch_dir, manifests={})

    with pytest.raises(TransportError, match="unreachable"):
        UpdateOrchestrator(build_context(tmp_path, client, manager)).run(release_libx_2())

    assert not scratch_dir.exists()


@pytest.mark.parametrize(
    "credentials",
    [Credentials(), Credentials(identity="alice"), Credentials(secret="app-pass")],
)
def test_missing_credentials_abort_before_any_work(
    tmp_path: Path, scratch_dir: Path, credentials: Credentials
) -> None:
    client = FakeDirectoryClient([make_descriptor("a")], branches={"acme/a": ["release"]})
    manager = FakeRepositoryManager(scratch_dir, manifests={"acme/a": LIB_X_1})
    context = build_context(tmp_path, client, manager)
    context.credentials = credentials

    with pytest.raises(ConfigError, match="You must set your identity and secret"):
        UpdateOrchestrator(context).run(release_libx_2())

    assert client.queries == []
    assert not scratch_dir.exists()


def test_unresolved_parameters_abort_before_any_work(scenario, scratch_dir: Path) -> None:
    context, client, _ = scenario

    with pytest.raises(ParameterResolutionError, match="version"):
        UpdateOrchestrator(context).run(ArgumentParameterResolver(branch="release", library="libX"))

    assert client.queries == []
    assert not scratch_dir.exists()


def test_existing_scratch_directory_content_survives_the_run(tmp_path: Path, scratch_dir: Path) -> None:
    scratch_dir.mkdir()
    (scratch_dir / "my-notes.txt").write_text("keep me")
    client = FakeDirectoryClient([make_descriptor("a"), make_descriptor("b")],
                                 branches={"acme/a": ["release"]})
    manager = FakeRepositoryManager(scratch_dir, manifests={"acme/a": LIB_X_1})

    report = UpdateOrchestrator(build_context(tmp_path, client, manager)).run(release_libx_2())

    assert report.outcome_for("acme/a") is RepositoryOutcome.UPDATED
    assert report.outcome_for("acme/b") is RepositoryOutcome.SKIPPED
    assert sorted(p.name for p in scratch_dir.iterdir()) == ["my-notes.txt"]
    assert (scratch_dir / "my-notes.txt").read_text() == "keep me"


def test_summary_log_carries_the_report(scenario, caplog: pytest.LogCaptureFixture) -> None:
    context, _, _ = scenario

    with caplog.at_level(logging.INFO, logger="dependency_bumper"):
        UpdateOrchestrator(context).run(release_libx_2())

    [summary] = [record for record in caplog.records if hasattr(record, "report")]
    assert summary.report["counts"] == {"updated": 1, "skipped": 1, "not_applicable": 1, "failed": 0}
    assert [entry["repository"] for entry in summary.report["repositories"]] == ["acme/a", "acme/b", "acme/c"]
