"""
Actor context.

Holds the "current acting owner" for one unit of work (a request, a job). An
explicitly set actor takes precedence; otherwise the actor is resolved from
the host's authentication mechanism by guard name.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional

from sqlalchemy.orm import Session

from .refs import EntityRef, try_ref

CONTEXT_INFO_KEY = "resource_ownership.context"

Authenticator = Callable[[str], Any]


class ActorContext:
    """Request-scoped holder of the current actor.

    Args:
        authenticator: Host callable returning the authenticated actor for a guard
        guard: Guard name passed to ``authenticator``
        interactive: False for background work (CLI, queues, seeders); query
            scoping is then skipped unless enabled in configuration
    """

    def __init__(
        self,
        authenticator: Optional[Authenticator] = None,
        guard: str = "web",
        interactive: bool = True,
    ):
        self.authenticator = authenticator
        self.guard = guard
        self.interactive = interactive
        self._current: Any = None
        self._saved: List[Any] = []

    def authenticated(self) -> Any:
        """Actor reported by the authentication mechanism, if any."""
        if self.authenticator is None:
            return None
        return self.authenticator(self.guard)

    def current(self) -> Any:
        """Explicitly set actor, else the authenticated one."""
        if self._current is not None:
            return self._current
        return self.authenticated()

    def current_ref(self) -> Optional[EntityRef]:
        return try_ref(self.current())

    def set(self, owner: Any) -> "ActorContext":
        self._current = owner
        return self

    def clear(self) -> "ActorContext":
        self._current = None
        return self

    def push(self, owner: Any) -> None:
        """Make ``owner`` current, remembering the previous value for ``pop``."""
        self._saved.append(self._current)
        self._current = owner

    def pop(self) -> Any:
        """Restore the actor that was current before the matching ``push``."""
        if not self._saved:
            raise RuntimeError("pop() called without a matching push()")
        replaced = self._current
        self._current = self._saved.pop()
        return replaced

    @contextmanager
    def acting_as(self, owner: Any) -> Iterator["ActorContext"]:
        self.push(owner)
        try:
            yield self
        finally:
            self.pop()

    def run_as(self, owner: Any, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Call ``fn`` with ``owner`` as the current actor, restoring the previous one afterwards."""
        with self.acting_as(owner):
            return fn(*args, **kwargs)

    def reset(self) -> None:
        """Forget explicit actors. Call at the start of a unit of work."""
        self._current = None
        self._saved.clear()

    @property
    def depth(self) -> int:
        return len(self._saved)


def bind_context(session: Session, context: ActorContext) -> None:
    """Attach ``context`` to ``session`` so model hooks can see the current actor."""
    session.info[CONTEXT_INFO_KEY] = context


def context_of(session: Optional[Session]) -> Optional[ActorContext]:
    if session is None:
        return None
    return session.info.get(CONTEXT_INFO_KEY)
