"""Test configuration and fixtures."""

import io
from pathlib import Path
from typing import Generator
from unittest.mock import Mock

import pytest
from git import Actor, Repo
from rich.console import Console

from git_pivotal.models import Identity, Story
from git_pivotal.tracker import TrackerClient


@pytest.fixture
def test_repo(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a local repository on ``main`` with pivotal config set.

    Returns:
        Path to the repository
    """
    local_path = tmp_path / "local"
    local_path.mkdir()
    local_repo = Repo.init(local_path)

    author = Actor("Test User", "test@example.com")
    with local_repo.config_writer() as config:
        config.set_value("user", "name", author.name)
        config.set_value("user", "email", author.email)
        config.set_value("pivotal", "token", "t0k3n")
        config.set_value("pivotal", "project", "1234567")

    readme = local_path / "README.md"
    readme.write_text("# Test Repository")
    local_repo.index.add(["README.md"])
    local_repo.index.commit("Initial commit", author=author)

    # Ensure we're on main branch
    if "main" not in local_repo.heads:
        local_repo.create_head("main")
    local_repo.heads.main.checkout()

    yield local_path


@pytest.fixture
def unconfigured_repo(tmp_path: Path) -> Path:
    """A repository without any pivotal config."""
    path = tmp_path / "unconfigured"
    path.mkdir()
    repo = Repo.init(path)
    with repo.config_writer() as config:
        config.set_value("user", "name", "Test User")
        config.set_value("user", "email", "test@example.com")
    (path / "README.md").write_text("# Unconfigured")
    repo.index.add(["README.md"])
    repo.index.commit("Initial commit")
    if "main" not in repo.heads:
        repo.create_head("main")
    repo.heads.main.checkout()
    return path


@pytest.fixture
def console() -> Console:
    """A console that records into memory."""
    return Console(file=io.StringIO(), width=200, color_system=None)


@pytest.fixture
def stories() -> list[Story]:
    """Three stories in tracker order: an estimated feature, a bug and a chore."""
    return [
        Story(id=101, name="Add login page", story_type="feature", current_state="unstarted", estimate=3, labels=("web",)),
        Story(id=102, name="Crash on save", story_type="bug", current_state="unscheduled"),
        Story(id=103, name="Upgrade deps", story_type="chore", current_state="started", labels=("infra", "ops")),
    ]


@pytest.fixture
def tracker(stories: list[Story]) -> Mock:
    """A tracker that knows the ``stories`` fixture and starts whatever it is asked to."""
    mock_tracker = Mock(spec=TrackerClient)
    mock_tracker.get_identity.return_value = Identity(id=77, name="Test User", username="test")
    mock_tracker.search_stories.return_value = list(stories)
    mock_tracker.get_story.side_effect = lambda story_id: next(s for s in stories if str(s.id) == str(story_id))

    def set_story_started(story_id: str, owner_id: int) -> Story:
        story = next(s for s in stories if str(s.id) == str(story_id))
        return Story(
            id=story.id,
            name=story.name,
            story_type=story.story_type,
            current_state="started",
            estimate=story.estimate,
            labels=story.labels,
        )

    mock_tracker.set_story_started.side_effect = set_story_started
    return mock_tracker
