"""Tests for the start, bump and done operations."""

from pathlib import Path
from unittest.mock import Mock

import pytest
from git import Repo
from rich.console import Console

from git_pivotal.branches import BranchName, UnparsableBranchName
from git_pivotal.config import PivotalConfig
from git_pivotal.git import GitRepo
from git_pivotal.models import FilterCriteria, LabelTerm, StartRequest, Story
from git_pivotal.selector import NoMatchingStories, UnestimatedFeature, UserCancelled
from git_pivotal.tracker import ApiFailure
from git_pivotal.workflow import StartedWithoutBranch, WorkflowEngine, criteria_from_options

CONFIG = PivotalConfig(token="t0k3n", project=1234567)


def make_engine(path: Path, console: Console, tracker: Mock, *answers: str) -> WorkflowEngine:
    remaining = list(answers)
    return WorkflowEngine(GitRepo(path), console, lambda question: remaining.pop(0), lambda config: tracker)


def branches(path: Path) -> list[str]:
    return sorted(head.name for head in Repo(path).heads)


def test_criteria_from_options_defaults() -> None:
    """Test that without flags every type and the configured states are searched."""
    criteria = criteria_from_options(PivotalConfig(token="t", project=1, label="api"), [], [])
    assert criteria.story_types == ("chore", "feature", "bug")
    assert criteria.states == ("unscheduled", "unstarted", "planned")
    assert criteria.labels == (LabelTerm("api"),)


def test_criteria_from_options_flags_win() -> None:
    """Test that flags replace the configured defaults."""
    config = PivotalConfig(token="t", project=1, label="api", states="planned")
    criteria = criteria_from_options(config, ["bug"], ["started"], "-blocked")
    assert criteria.story_types == ("bug",)
    assert criteria.single_type == "bug"
    assert criteria.states == ("started",)
    assert criteria.labels == (LabelTerm("blocked", exclude=True),)


def test_start_from_list(test_repo: Path, console: Console, tracker: Mock) -> None:
    """Test the full start pipeline: list, choose index 2, start it, branch."""
    engine = make_engine(test_repo, console, tracker, "2")
    branch = engine.start(CONFIG, StartRequest(criteria=FilterCriteria()))

    assert str(branch) == "bug/Crash-on-save_102"
    tracker.set_story_started.assert_called_once_with(102, 77)
    tracker.close.assert_called_once()
    assert Repo(test_repo).active_branch.name == "bug/Crash-on-save_102"
    assert "git checkout -b bug/Crash-on-save_102" in console.file.getvalue()


def test_start_direct_id(test_repo: Path, console: Console, tracker: Mock) -> None:
    """Test starting an explicit story without prompting."""
    engine = make_engine(test_repo, console, tracker)
    branch = engine.start(CONFIG, StartRequest(story_id="103"))
    assert str(branch) == "chore/Upgrade-deps_103"
    tracker.search_stories.assert_not_called()


def test_start_direct_id_allows_unestimated_feature(test_repo: Path, console: Console, tracker: Mock) -> None:
    """Test that an explicit id bypasses the estimate check."""
    tracker.get_story.side_effect = None
    tracker.get_story.return_value = Story(id=9, name="Raw idea", story_type="feature")
    tracker.set_story_started.side_effect = None
    tracker.set_story_started.return_value = Story(id=9, name="Raw idea", story_type="feature", current_state="started")
    branch = make_engine(test_repo, console, tracker).start(CONFIG, StartRequest(story_id="9"))
    assert str(branch) == "feature/Raw-idea_9"


def test_start_uses_single_type_when_tracker_omits_it(test_repo: Path, console: Console, tracker: Mock) -> None:
    """Test that a story without a type is named after the only searched type."""
    typeless = Story(id=55, name="Tidy logs", current_state="unstarted")
    tracker.search_stories.return_value = [typeless]
    tracker.set_story_started.side_effect = None
    tracker.set_story_started.return_value = typeless
    engine = make_engine(test_repo, console, tracker, "1")
    branch = engine.start(CONFIG, StartRequest(criteria=FilterCriteria(story_types=("chore",))))
    assert str(branch) == "chore/Tidy-logs_55"


def test_start_unestimated_feature_from_list(test_repo: Path, console: Console, tracker: Mock) -> None:
    """Test that choosing an unestimated feature stops before anything is mutated."""
    tracker.search_stories.return_value = [Story(id=8, name="Raw idea", story_type="feature", current_state="unstarted")]
    with pytest.raises(UnestimatedFeature):
        make_engine(test_repo, console, tracker, "1").start(CONFIG, StartRequest())
    tracker.set_story_started.assert_not_called()
    assert "feature/Raw-idea_8" not in branches(test_repo)


def test_start_cancelled(test_repo: Path, console: Console, tracker: Mock) -> None:
    """Test that an out of range answer cancels without side effects."""
    with pytest.raises(UserCancelled):
        make_engine(test_repo, console, tracker, "9").start(CONFIG, StartRequest())
    tracker.set_story_started.assert_not_called()
    tracker.close.assert_called_once()


def test_start_no_stories(test_repo: Path, console: Console, tracker: Mock) -> None:
    """Test that an empty search aborts."""
    tracker.search_stories.return_value = []
    with pytest.raises(NoMatchingStories):
        make_engine(test_repo, console, tracker).start(CONFIG, StartRequest())


def test_start_api_failure_aborts(test_repo: Path, console: Console, tracker: Mock) -> None:
    """Test that a failed state update leaves the repository alone."""
    tracker.set_story_started.side_effect = ApiFailure("set_story_started", status_code=403)
    before = branches(test_repo)
    with pytest.raises(ApiFailure):
        make_engine(test_repo, console, tracker, "1").start(CONFIG, StartRequest())
    assert branches(test_repo) == before


def test_start_branch_failure_is_not_rolled_back(test_repo: Path, console: Console, tracker: Mock) -> None:
    """Test that a branch failure after starting the story is reported, not compensated."""
    Repo(test_repo).create_head("chore/Upgrade-deps_103")
    with pytest.raises(StartedWithoutBranch) as excinfo:
        make_engine(test_repo, console, tracker).start(CONFIG, StartRequest(story_id="103"))
    assert excinfo.value.branch == BranchName("chore/Upgrade-deps", "103")
    assert "already marked started" in str(excinfo.value)
    tracker.set_story_started.assert_called_once()


def test_bump_creates_next_version_and_keeps_previous(test_repo: Path, console: Console, tracker: Mock) -> None:
    """Test that bump branches off and never deletes."""
    repo = Repo(test_repo)
    repo.create_head("feature/foo_42").checkout()
    engine = make_engine(test_repo, console, tracker)

    assert str(engine.bump()) == "feature/foo_42.v1"
    assert str(engine.bump()) == "feature/foo_42.v2"
    assert repo.active_branch.name == "feature/foo_42.v2"
    assert {"feature/foo_42", "feature/foo_42.v1", "feature/foo_42.v2"} <= set(branches(test_repo))


def test_bump_on_trunk_fails(test_repo: Path, console: Console, tracker: Mock) -> None:
    """Test that bumping a branch that is not a story branch fails loudly."""
    before = branches(test_repo)
    with pytest.raises(UnparsableBranchName):
        make_engine(test_repo, console, tracker).bump()
    assert branches(test_repo) == before


def test_done_deletes_all_versions(test_repo: Path, console: Console, tracker: Mock) -> None:
    """Test that done switches to trunk and removes every version of the story's branch."""
    repo = Repo(test_repo)
    for name in ("feature/foo_42", "feature/foo_42.v1", "feature/foo_42.v2", "feature/bar_421"):
        repo.create_head(name)
    repo.heads["feature/foo_42.v2"].checkout()

    deleted = make_engine(test_repo, console, tracker).done("main", "42")

    assert sorted(deleted) == ["feature/foo_42", "feature/foo_42.v1", "feature/foo_42.v2"]
    assert repo.active_branch.name == "main"
    remaining = branches(test_repo)
    assert "feature/bar_421" in remaining
    assert not any(name.startswith("feature/foo_42") for name in remaining)


def test_done_twice_is_noop(test_repo: Path, console: Console, tracker: Mock) -> None:
    """Test that done is idempotent."""
    Repo(test_repo).create_head("bug/x_7")
    engine = make_engine(test_repo, console, tracker)
    assert engine.done("main", "7") == ["bug/x_7"]
    assert engine.done("main", "7") == []


def test_done_without_branches(test_repo: Path, console: Console, tracker: Mock) -> None:
    """Test that done with nothing to delete succeeds."""
    before = branches(test_repo)
    assert make_engine(test_repo, console, tracker).done("main", "999") == []
    assert branches(test_repo) == before
