"""Branch naming."""

import re
from dataclasses import dataclass, replace
from typing import Optional

from git_pivotal.errors import PivotalError
from git_pivotal.models import Story

_BRANCH_RE = re.compile(r"^(?P<prefix>.+)_(?P<story_id>[A-Za-z0-9]+)(?:\.v(?P<version>\d+))?$")
_SEPARATOR_RUN_RE = re.compile(r"[^A-Za-z0-9]+")


class UnparsableBranchName(PivotalError):
    """A branch name cannot be derived or does not follow ``<prefix>_<id>[.v<N>]``."""


@dataclass(frozen=True)
class BranchName:
    """A story branch name: ``<prefix>_<story_id>`` with an optional ``.v<version>``."""

    prefix: str
    story_id: str
    version: Optional[int] = None

    def __str__(self) -> str:
        name = f"{self.prefix}_{self.story_id}"
        if self.version is not None:
            name += f".v{self.version}"
        return name

    @classmethod
    def parse(cls, text: str) -> "BranchName":
        match = _BRANCH_RE.match(text)
        if not match:
            raise UnparsableBranchName(f"Branch name {text!r} does not look like <type>/<name>_<story id>[.v<N>]")
        version = match.group("version")
        return cls(match.group("prefix"), match.group("story_id"), int(version) if version is not None else None)


def slugify(text: str) -> str:
    """Collapse each run of non-alphanumeric characters to one hyphen."""
    return _SEPARATOR_RUN_RE.sub("-", text).strip("-")


def name_for(story: Story, fallback_type: Optional[str] = None) -> BranchName:
    """Derive the branch name for a story.

    Args:
        story: The story to work on.
        fallback_type: Type to use when the story does not carry one.

    Raises:
        UnparsableBranchName: If no story type is known
    """
    branch_type = story.effective_type(fallback_type)
    if not branch_type:
        raise UnparsableBranchName(f"Cannot name a branch for story {story.id}: story type is unknown")
    return BranchName(f"{branch_type}/{slugify(story.name)}", str(story.id))


def bump(current: str) -> BranchName:
    """Return the next version of a branch name; ``x_1`` becomes ``x_1.v1``, ``x_1.v1`` becomes ``x_1.v2``."""
    name = BranchName.parse(current)
    return replace(name, version=1 if name.version is None else name.version + 1)


def matches_story(branch: str, story_id: str) -> bool:
    """Whether ``branch`` is a version of a branch for ``story_id``."""
    try:
        return BranchName.parse(branch).story_id == str(story_id)
    except UnparsableBranchName:
        return False
