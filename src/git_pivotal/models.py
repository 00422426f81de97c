"""Tracker data model."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class StoryType(str, Enum):
    """Story type."""

    CHORE = "chore"
    FEATURE = "feature"
    BUG = "bug"


STORY_TYPES = tuple(story_type.value for story_type in StoryType)


@dataclass(frozen=True)
class Identity:
    """The authenticated tracker user."""

    id: int
    name: str = ""
    username: str = ""

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "Identity":
        """Build an identity from the tracker's /me response."""
        return cls(id=payload["id"], name=payload.get("name", ""), username=payload.get("username", ""))


@dataclass(frozen=True)
class Story:
    """A tracker story."""

    id: int
    name: str
    story_type: Optional[str] = None
    current_state: Optional[str] = None
    estimate: Optional[float] = None
    labels: tuple[str, ...] = ()

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "Story":
        """Build a story from a tracker JSON object."""
        labels = tuple(label["name"] if isinstance(label, dict) else str(label) for label in payload.get("labels") or ())
        return cls(
            id=payload["id"],
            name=payload.get("name", ""),
            story_type=payload.get("story_type"),
            current_state=payload.get("current_state"),
            estimate=payload.get("estimate"),
            labels=labels,
        )

    def effective_type(self, fallback: Optional[str] = None) -> Optional[str]:
        """The story type, or ``fallback`` when the search did not return one."""
        return self.story_type or fallback

    def is_unestimated_feature(self, fallback: Optional[str] = None) -> bool:
        """Whether this is a feature that cannot be started yet."""
        return self.effective_type(fallback) == StoryType.FEATURE.value and self.estimate is None


@dataclass(frozen=True)
class LabelTerm:
    """One term of a label expression."""

    name: str
    exclude: bool = False

    def render(self) -> str:
        """Render as a search filter term."""
        return f'{"-" if self.exclude else ""}label:"{self.name}"'


def parse_label_expression(expression: Optional[str]) -> tuple[LabelTerm, ...]:
    """Parse ``"a,-b"`` into an include term for ``a`` and an exclude term for ``b``."""
    terms = []
    for raw in (expression or "").split(","):
        term = raw.strip()
        if term.startswith("-"):
            name = term[1:].strip()
            if name:
                terms.append(LabelTerm(name, exclude=True))
        elif term:
            terms.append(LabelTerm(term))
    return tuple(terms)


@dataclass(frozen=True)
class FilterCriteria:
    """What to search the tracker for."""

    story_types: tuple[str, ...] = STORY_TYPES
    states: tuple[str, ...] = ("unscheduled", "unstarted", "planned")
    labels: tuple[LabelTerm, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.story_types:
            raise ValueError("At least one story type is required")
        if not self.states:
            raise ValueError("At least one state is required")

    @property
    def single_type(self) -> Optional[str]:
        """The only story type searched for, if there is exactly one."""
        return self.story_types[0] if len(self.story_types) == 1 else None

    def filter_expression(self) -> str:
        terms = [f"state:{','.join(self.states)}", f"story_type:{','.join(self.story_types)}"]
        terms.extend(label.render() for label in self.labels)
        return " ".join(terms)


@dataclass(frozen=True)
class StartRequest:
    """Inputs to the start operation, carried from selection to branch naming."""

    story_id: Optional[str] = None
    criteria: FilterCriteria = field(default_factory=FilterCriteria)
