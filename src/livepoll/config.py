"""Watch configuration supplied once when the middleware is built."""

from collections.abc import Awaitable, Callable
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

# Receives the changed path (None when the watch source gives none) and
# returns, or resolves to, whether the change should reload pages.
CheckFn = Callable[[str | None], bool | Awaitable[bool]]


def always_reload(changed_path: str | None = None) -> bool:
    """Default filter: every change reloads."""
    return True


class WatchConfiguration(BaseModel):
    """Immutable settings for one middleware instance.

    When ``enabled`` is false the middleware forwards every request untouched
    and starts no watchers; the remaining fields are never consulted.
    """

    model_config = ConfigDict(frozen=True)

    target_dirs: tuple[Path, ...]
    check: CheckFn = always_reload
    enabled: bool = True

    # Upper bound for a held reload-wait request; None holds it until a change
    poll_timeout: float | None = Field(default=None, gt=0)
    # Client-side pause after a failed poll
    retry_interval: float = Field(default=1.0, ge=0)
    # Watch source restart backoff; None stops the worker on the first failure
    restart_delay: float | None = Field(default=1.0, gt=0)
    max_restart_delay: float = Field(default=30.0, gt=0)
    force_polling: bool | None = None
