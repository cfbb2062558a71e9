# healthtrack/runtime/teardown.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from healthtrack.core.errors import TeardownError


@dataclass(frozen=True)
class TeardownOutcome:
    resource: str
    ok: bool
    error: Optional[TeardownError] = None


@dataclass
class TeardownReport:
    """
    Per-resource results of a teardown (unsubscribe / disconnect / destroy).

    Teardown as a whole always completes; failures are recorded here
    instead of being raised.
    """
    outcomes: List[TeardownOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(o.ok for o in self.outcomes)

    @property
    def failures(self) -> List[TeardownOutcome]:
        return [o for o in self.outcomes if not o.ok]

    def extend(self, other: "TeardownReport") -> "TeardownReport":
        self.outcomes.extend(other.outcomes)
        return self

    async def attempt(
        self,
        resource: str,
        action: Callable[[], Awaitable[None]],
        *,
        logger: Optional[logging.Logger] = None,
    ) -> bool:
        """Run one release step, record the outcome, never raise."""
        try:
            await action()
        except Exception as e:
            err = TeardownError(
                f"Failed to release {resource}.",
                hint=str(e),
                details={"resource": resource, "exc_type": type(e).__name__},
            )
            self.outcomes.append(TeardownOutcome(resource=resource, ok=False, error=err))
            (logger or logging.getLogger(__name__)).warning(
                "TEARDOWN_FAILED resource=%s err=%s", resource, e
            )
            return False

        self.outcomes.append(TeardownOutcome(resource=resource, ok=True))
        return True
