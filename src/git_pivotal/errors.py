"""Base error for git-pivotal."""


class PivotalError(Exception):
    """Error that aborts the current operation."""
