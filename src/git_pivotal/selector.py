"""Choosing the story to work on."""

from functools import cmp_to_key
from typing import Callable, Optional

from rich.console import Console
from rich.markup import escape

from git_pivotal.errors import PivotalError
from git_pivotal.logger import get_logger
from git_pivotal.models import FilterCriteria, Story, StoryType
from git_pivotal.tracker import TrackerClient

logger = get_logger("selector")

Prompt = Callable[[str], str]

CHOICE_QUESTION = "\nEnter # of story to work on: "


class SelectionError(PivotalError):
    """No acceptable story could be selected."""


class NoMatchingStories(SelectionError):
    """The search returned nothing."""


class UnestimatedFeature(SelectionError):
    """A feature was chosen before it was estimated."""

    def __init__(self, story: Story) -> None:
        super().__init__(
            f"Feature {story.id} ({story.name}) has no estimate. Estimate it in Pivotal Tracker before starting it."
        )
        self.story = story


class UserCancelled(Exception):
    """The user declined to pick a story."""


def _compare_field(a: Story, b: Story, field: str) -> int:
    left = getattr(a, field)
    right = getattr(b, field)
    # Absent on either side compares equal
    if not left or not right:
        return 0
    left, right = left.casefold(), right.casefold()
    return (left > right) - (left < right)


def _compare(a: Story, b: Story) -> int:
    cmp = _compare_field(a, b, "current_state")
    if cmp:
        return -cmp
    cmp = _compare_field(a, b, "story_type")
    if cmp:
        return -cmp
    return _compare_field(a, b, "name")


def sort_stories(stories: list[Story]) -> list[Story]:
    """Sort by state descending, then type descending, then name ascending."""
    return sorted(stories, key=cmp_to_key(_compare))


def describe_story(index: int, story: Story, fallback_type: Optional[str] = None) -> str:
    """Render one numbered line of the story list as rich markup."""
    line = f"{index}. {escape(story.name)}"
    extras = [value for value in (story.story_type, story.current_state) if value]
    if story.effective_type(fallback_type) == StoryType.FEATURE.value:
        extras.append("[bold red]UNESTIMATED[/bold red]" if story.estimate is None else f"{story.estimate:g} points")
    if extras:
        line += f" [dim]({', '.join(extras)})[/dim]"
    if story.labels:
        line += " " + " ".join(f"[cyan]\\[{escape(label)}][/cyan]" for label in story.labels)
    return line


class StorySelector:
    """Selects exactly one story, by id or from an interactive list."""

    def __init__(self, tracker: TrackerClient, prompt: Prompt, console: Console) -> None:
        self.tracker = tracker
        self.prompt = prompt
        self.console = console

    def select(self, story_id: Optional[str], criteria: FilterCriteria) -> Story:
        """Select a story.

        An explicit ``story_id`` is trusted as is; estimation is only enforced on
        stories chosen from the list.

        Raises:
            NoMatchingStories: If the search finds nothing
            UnestimatedFeature: If the chosen feature has no estimate
            UserCancelled: If the answer is not a listed number
            ApiFailure: If a tracker request fails
        """
        if story_id is not None:
            logger.debug("direct lookup of story %s", story_id)
            return self.tracker.get_story(story_id)

        stories = self.tracker.search_stories(criteria)
        if not stories:
            raise NoMatchingStories(f"No stories found matching {criteria.filter_expression()}")

        stories = sort_stories(stories)
        self.list_stories(stories, criteria.single_type)
        story = self.choose(stories)
        if story.is_unestimated_feature(criteria.single_type):
            raise UnestimatedFeature(story)
        return story

    def list_stories(self, stories: list[Story], fallback_type: Optional[str] = None) -> None:
        """Print the numbered story list that ``choose`` indexes into."""
        self.console.print()
        for index, story in enumerate(stories, start=1):
            self.console.print(describe_story(index, story, fallback_type), highlight=False)

    def choose(self, stories: list[Story]) -> Story:
        """Ask for a 1-based index into ``stories``."""
        answer = self.prompt(CHOICE_QUESTION)
        try:
            index = int(answer.strip())
        except ValueError:
            logger.debug("choose: non-numeric answer %r", answer)
            raise UserCancelled(answer) from None
        if not 1 <= index <= len(stories):
            logger.debug("choose: index %d out of range", index)
            raise UserCancelled(answer)
        story = stories[index - 1]
        logger.debug("choose: index %d is story %s", index, story.id)
        return story
