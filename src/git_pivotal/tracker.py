"""Pivotal Tracker API client.

Wraps the few REST calls the workflow needs so command code never talks HTTP directly.
"""

from typing import Any, Optional

import requests

from git_pivotal.errors import PivotalError
from git_pivotal.logger import get_logger
from git_pivotal.models import FilterCriteria, Identity, Story

logger = get_logger("tracker")

DEFAULT_BASE_URL = "https://www.pivotaltracker.com/services/v5"
STORY_FIELDS = "id,name,estimate,story_type,current_state,labels"
REQUEST_TIMEOUT = 30


class ApiFailure(PivotalError):
    """A tracker request failed at the transport or HTTP level."""

    def __init__(self, operation: str, status_code: Optional[int] = None, cause: Optional[BaseException] = None) -> None:
        if status_code is not None:
            message = f"Tracker request {operation} failed with HTTP status:{status_code}"
        else:
            message = f"Tracker request {operation} failed: {cause}"
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code
        self.cause = cause


class TrackerClient:
    """Client for the Pivotal Tracker v5 API, scoped to one project."""

    def __init__(self, token: str, project: int, base_url: str = DEFAULT_BASE_URL) -> None:
        """Initialize the client.

        Args:
            token: Personal API token.
            project: Numeric project id.
            base_url: API root.

        Raises:
            ValueError: If required configuration is missing.
        """
        if not token:
            raise ValueError("Tracker token is required")
        if not project:
            raise ValueError("Tracker project is required")

        self.project = project
        self._base_url = base_url.rstrip("/")
        self._session = requests.Session()
        self._session.headers.update(
            {
                "X-TrackerToken": token,
                "Accept": "application/json",
                "User-Agent": "git-pivotal",
            }
        )

    def _project_url(self, path: str) -> str:
        """URL of ``path`` under this project."""
        return f"{self._base_url}/projects/{self.project}/{path.lstrip('/')}"

    def _request(self, operation: str, method: str, url: str, **kwargs: Any) -> Any:
        logger.debug("%s: %s %s %s", operation, method, url, kwargs.get("params") or kwargs.get("json") or "")
        try:
            resp = self._session.request(method, url, timeout=REQUEST_TIMEOUT, **kwargs)
        except requests.RequestException as err:
            raise ApiFailure(operation, cause=err) from err
        if resp.status_code != 200:
            raise ApiFailure(operation, status_code=resp.status_code)
        try:
            return resp.json()
        except ValueError as err:
            raise ApiFailure(operation, cause=err) from err

    def get_identity(self) -> Identity:
        """Fetch the user the token belongs to."""
        data = self._request("get_identity", "GET", f"{self._base_url}/me")
        return Identity.from_api(data)

    def search_stories(self, criteria: FilterCriteria) -> list[Story]:
        """Search the project's stories.

        Args:
            criteria: Types, states and labels to filter on.

        Returns:
            Matching stories in tracker order.
        """
        params = {"filter": criteria.filter_expression(), "fields": STORY_FIELDS}
        data = self._request("search_stories", "GET", self._project_url("stories"), params=params)
        stories = [Story.from_api(item) for item in data]
        logger.debug("search_stories returned %d stories", len(stories))
        return stories

    def get_story(self, story_id: str) -> Story:
        """Fetch a single story by id."""
        data = self._request("get_story", "GET", self._project_url(f"stories/{story_id}"), params={"fields": STORY_FIELDS})
        return Story.from_api(data)

    def set_story_started(self, story_id: str, owner_id: int) -> Story:
        """Mark a story started and make ``owner_id`` its owner.

        Returns:
            The story as updated by the tracker.
        """
        payload = {"current_state": "started", "owner_ids": [owner_id]}
        data = self._request("set_story_started", "PUT", self._project_url(f"stories/{story_id}"), json=payload)
        return Story.from_api(data)

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()
