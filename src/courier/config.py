"""Configuration: frozen client settings with environment overrides."""

from __future__ import annotations

from dataclasses import dataclass, field
import os

from dotenv import load_dotenv

from courier.errors import ConfigurationError
from courier.retry import RetryPolicy

load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def _default_user_agent() -> str:
    from courier import __version__

    return f"courier/{__version__}"


@dataclass(frozen=True)
class Config:
    """Immutable settings for ``HttpxClient``.

    Example:
        config = Config(timeout_s=5.0, retry=RetryPolicy(max_attempts=3))
        # or, resolved from COURIER_* environment variables
        config = Config.from_env()
    """

    timeout_s: float = 10.0
    user_agent: str = field(default_factory=_default_user_agent)
    follow_redirects: bool = False
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.timeout_s <= 0:
            raise ConfigurationError(
                f"timeout_s must be > 0, got {self.timeout_s}",
                hint="This bounds each request attempt in seconds.",
            )
        if not self.user_agent.strip():
            raise ConfigurationError(
                "user_agent must not be empty",
                hint="Omit user_agent to use the default courier/<version>.",
            )

    @classmethod
    def from_env(cls, **overrides: object) -> Config:
        """Build a Config from ``COURIER_*`` environment variables.

        Explicit keyword *overrides* win over the environment.
        """
        values: dict[str, object] = {}

        raw_timeout = os.environ.get("COURIER_TIMEOUT_S")
        if raw_timeout is not None:
            values["timeout_s"] = _parse_float("COURIER_TIMEOUT_S", raw_timeout)

        raw_agent = os.environ.get("COURIER_USER_AGENT")
        if raw_agent is not None:
            values["user_agent"] = raw_agent

        raw_redirects = os.environ.get("COURIER_FOLLOW_REDIRECTS")
        if raw_redirects is not None:
            values["follow_redirects"] = _parse_bool(
                "COURIER_FOLLOW_REDIRECTS", raw_redirects
            )

        raw_attempts = os.environ.get("COURIER_MAX_ATTEMPTS")
        if raw_attempts is not None:
            attempts = _parse_int("COURIER_MAX_ATTEMPTS", raw_attempts)
            try:
                values["retry"] = RetryPolicy(max_attempts=attempts)
            except ValueError as exc:
                raise ConfigurationError(
                    str(exc), hint="COURIER_MAX_ATTEMPTS must be >= 1."
                ) from exc

        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]


def _parse_float(name: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be a number, got {raw!r}",
            hint=f"Unset {name} or give it a numeric value.",
        ) from None


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be an integer, got {raw!r}",
            hint=f"Unset {name} or give it a whole number.",
        ) from None


def _parse_bool(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ConfigurationError(
        f"{name} must be a boolean, got {raw!r}",
        hint="Use one of: 1/0, true/false, yes/no, on/off.",
    )
