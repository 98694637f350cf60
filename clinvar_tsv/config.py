import os
import pathlib

from dotenv import dotenv_values
from pydantic import BaseModel, field_validator

from clinvar_tsv.fs import DEFAULT_BUFFER_SIZE, DEFAULT_QUEUE_DEPTH

_dotenv_env = os.environ.get("DOTENV_ENV", "dev")
_dotenv_values = dotenv_values(pathlib.Path(__file__).parent / f".{_dotenv_env}.env")


def env_or_dotenv_or(
    key_name: str, default: str | None = None, throw: bool = False
) -> str | None:
    """
    Retrieves a value from the environment.
    If not set, retrieve it from the dotenv file.
    If not set in the dotenv file, return the default value.

    If throw is True, and the value and default is falsy, raise a ValueError.
    """
    val = os.environ.get(key_name, _dotenv_values.get(key_name, default))
    if throw and not val:
        raise ValueError(f"{key_name} must be set")
    return val


class Env(BaseModel):
    pass


class ReadAheadEnv(Env):
    buffer_size: int
    queue_depth: int
    # Seconds between progress log messages
    progress_interval: int

    @field_validator("buffer_size", "queue_depth", "progress_interval")
    @classmethod
    def _validate_positive(cls, v, info):
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive, got {v}")
        return v


def get_read_ahead_env() -> ReadAheadEnv:
    env = ReadAheadEnv(
        buffer_size=env_or_dotenv_or(
            "CLINVAR_TSV_BUFFER_SIZE", default=str(DEFAULT_BUFFER_SIZE)
        ),
        queue_depth=env_or_dotenv_or(
            "CLINVAR_TSV_QUEUE_DEPTH", default=str(DEFAULT_QUEUE_DEPTH)
        ),
        progress_interval=env_or_dotenv_or(
            "CLINVAR_TSV_PROGRESS_INTERVAL", default="60"
        ),
    )
    return _set_env(env)


def _set_env(env: Env) -> Env:
    if getattr(Env, "env", None) is None:
        Env.env = env
    return Env.env


def reset_env():
    """Forgets the cached Env, so the next get_env() reads the environment again."""
    Env.env = None


def get_env() -> ReadAheadEnv:
    env = getattr(Env, "env", None)
    if env is None:
        env = get_read_ahead_env()
    return env
