"""Pivotal Tracker integration for git.

Features:
- Pick a story by id or from a filtered, interactive list
- Mark it started and create a branch named after it
- Bump the branch to a fresh version for rebasing
- Delete every branch of a finished story
"""

__version__ = "0.3.0"
