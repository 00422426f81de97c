"""Configuration read from the ``pivotal`` section of git config."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from git_pivotal.errors import PivotalError
from git_pivotal.git import GitRepo
from git_pivotal.logger import get_logger

logger = get_logger("config")

SECTION = "pivotal"
CONFIG_TIMEOUT = 5.0
DEFAULT_STATES = "unscheduled,unstarted,planned"
DEFAULT_TRUNK = "main"


class ConfigMissing(PivotalError):
    """Required configuration is absent or invalid."""

    def __init__(self, keys: list[str], detail: str = "") -> None:
        names = " and ".join(f"{SECTION}.{key}" for key in keys)
        message = detail or f"git config variables {names} must be defined."
        message += "\nSet them with: " + "; ".join(f"git config {SECTION}.{key} <value>" for key in keys)
        super().__init__(message)
        self.keys = keys


class PivotalConfig(BaseModel):
    """Settings for one invocation."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    token: str = Field(min_length=1, description="Personal API token")
    project: int = Field(gt=0, description="Numeric project id")
    label: Optional[str] = Field(default=None, description="Default label expression")
    states: str = Field(default=DEFAULT_STATES, description="Default comma-separated states")

    @property
    def state_list(self) -> list[str]:
        """The configured states, split and trimmed."""
        return [state.strip() for state in self.states.split(",") if state.strip()]


def config_error(err: ValidationError) -> ConfigMissing:
    """Turn a validation failure into a message naming the git config keys."""
    keys: list[str] = []
    problems: list[str] = []
    for error in err.errors():
        key = str(error["loc"][0])
        if key not in keys:
            keys.append(key)
        if error["type"] != "missing":
            problems.append(f"{SECTION}.{key}: {error['msg']} (got {error.get('input')!r})")
    return ConfigMissing(keys, "\n".join(problems))


def load_config(repo: GitRepo) -> PivotalConfig:
    """Read and validate the ``pivotal.*`` git config keys.

    Raises:
        ConfigMissing: If ``token`` or ``project`` is unset or ``project`` is not numeric
        CommandTimeout: If git config does not answer in time
    """
    values = repo.get_config(SECTION, timeout=CONFIG_TIMEOUT)
    logger.debug("config keys: %s", sorted(values))

    # An empty value is the same as an unset key
    try:
        return PivotalConfig.model_validate({key: value for key, value in values.items() if value})
    except ValidationError as err:
        raise config_error(err) from err


def load_trunk(repo: GitRepo) -> str:
    """Read the trunk branch name; ``done`` needs only this, not tracker credentials."""
    return repo.get_config(SECTION, timeout=CONFIG_TIMEOUT).get("trunk") or DEFAULT_TRUNK
