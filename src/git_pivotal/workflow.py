"""The start, bump and done operations."""

from typing import Callable, Optional

from rich.console import Console
from rich.markup import escape

from git_pivotal.branches import BranchName, matches_story, name_for
from git_pivotal.branches import bump as next_version
from git_pivotal.config import PivotalConfig, load_config
from git_pivotal.errors import PivotalError
from git_pivotal.git import GitRepo
from git_pivotal.logger import get_logger
from git_pivotal.models import STORY_TYPES, FilterCriteria, StartRequest, parse_label_expression
from git_pivotal.selector import Prompt, StorySelector
from git_pivotal.tracker import TrackerClient

logger = get_logger("workflow")

TrackerFactory = Callable[[PivotalConfig], TrackerClient]


class StartedWithoutBranch(PivotalError):
    """The story was started in the tracker but its branch could not be created."""

    def __init__(self, story_id: str, branch: BranchName, cause: PivotalError) -> None:
        super().__init__(
            f"{cause}\nStory {story_id} is already marked started in Pivotal Tracker; "
            f"create branch {branch} yourself or restart the story there."
        )
        self.story_id = story_id
        self.branch = branch


def default_tracker_factory(config: PivotalConfig) -> TrackerClient:
    """Build a real tracker client from the configured credentials."""
    return TrackerClient(config.token, config.project)


def criteria_from_options(
    config: PivotalConfig,
    story_types: list[str],
    states: list[str],
    label: Optional[str] = None,
) -> FilterCriteria:
    """Combine command-line flags with configured defaults; flags win."""
    return FilterCriteria(
        story_types=tuple(t for t in STORY_TYPES if t in story_types) if story_types else STORY_TYPES,
        states=tuple(states) if states else tuple(config.state_list),
        labels=parse_label_expression(label if label is not None else config.label),
    )


class WorkflowEngine:
    """Runs the story branch lifecycle against one repository."""

    def __init__(
        self,
        repo: GitRepo,
        console: Console,
        prompt: Prompt,
        tracker_factory: TrackerFactory = default_tracker_factory,
    ) -> None:
        self.repo = repo
        self.console = console
        self.prompt = prompt
        self.tracker_factory = tracker_factory

    def load_config(self) -> PivotalConfig:
        """Load the tracker settings of this engine's repository."""
        return load_config(self.repo)

    def start(self, config: PivotalConfig, request: StartRequest) -> BranchName:
        """Start a story and create its branch.

        Nothing is rolled back: if the branch cannot be created after the story
        was started, the failure is raised as ``StartedWithoutBranch``.
        """
        tracker = self.tracker_factory(config)
        try:
            identity = tracker.get_identity()
            logger.debug("identity: %s", identity)

            selector = StorySelector(tracker, self.prompt, self.console)
            story = selector.select(request.story_id, request.criteria)

            started = tracker.set_story_started(story.id, identity.id)
            logger.debug("story started: %s", started)
        finally:
            tracker.close()

        # The update response may omit the type; fall back to the selected story, then the search
        branch = name_for(started, story.story_type or request.criteria.single_type)
        self.console.print(f"\n[bold dim]git checkout -b {escape(str(branch))}[/bold dim]")
        try:
            output = self.repo.create_branch(str(branch))
        except PivotalError as err:
            raise StartedWithoutBranch(str(story.id), branch, err) from err
        if output:
            self.console.print(escape(output), highlight=False)
        return branch

    def bump(self) -> BranchName:
        """Create the next version of the current branch, keeping the current one."""
        current = self.repo.get_current_branch_name()
        branch = next_version(current)
        logger.debug("bump: %s -> %s", current, branch)
        self.console.print(f"[bold dim]git checkout -b {escape(str(branch))}[/bold dim]")
        output = self.repo.create_branch(str(branch))
        if output:
            self.console.print(escape(output), highlight=False)
        return branch

    def done(self, trunk: str, story_id: str) -> list[str]:
        """Switch to trunk and delete every branch of a story.

        Returns:
            The deleted branch names; empty when there was nothing to delete.
        """
        self.repo.checkout(trunk)
        candidates = self.repo.list_branches(f"*_{story_id}*")
        branches = [name for name in candidates if matches_story(name, story_id)]
        logger.debug("done: candidates=%s matching=%s", candidates, branches)
        self.repo.delete_branches(branches)
        return branches
