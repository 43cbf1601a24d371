"""
Permission guard — what a UI element renders for a permission request.

A guard holds one request and a render strategy, asks the façade for a
decision and re-asks when the request identity changes or the façade
publishes a new version.

Usage:
    guard = PermissionGuard(facade, PermissionRequest(module="hr", action="read"),
                            strategy=RenderStrategy.FALLBACK_ON_DENY)
    outcome = await guard.evaluate()      # GuardOutcome.CHILDREN / FALLBACK / ...
    ...
    guard.close()
"""

from enum import Enum
from typing import Optional

from .facade import PermissionFacade
from .types import PermissionRequest, Principal


class RenderStrategy(str, Enum):
    GRANT_ONLY = "grant_only"  # children on grant, nothing otherwise
    FALLBACK_ON_DENY = "fallback_on_deny"
    NOTHING_ON_DENY = "nothing_on_deny"


class GuardOutcome(str, Enum):
    CHILDREN = "children"
    FALLBACK = "fallback"
    NOTHING = "nothing"
    LOADING = "loading"


class PermissionGuard:
    def __init__(
        self,
        facade: PermissionFacade,
        request: PermissionRequest,
        strategy: RenderStrategy = RenderStrategy.GRANT_ONLY,
        show_loading: bool = False,
        principal: Optional[Principal] = None,
    ):
        self.facade = facade
        self.request = request
        self.strategy = strategy
        self.show_loading = show_loading
        self.principal = principal

        self.granted: Optional[bool] = None  # None until the first decision
        self.stale = True
        self._decided_for: Optional[tuple[int, Optional[Principal]]] = None
        self._unsubscribe = facade.subscribe(self._on_version_change)

    def _subject(self) -> Optional[Principal]:
        return self.principal if self.principal is not None else self.facade.principal

    def _on_version_change(self, epoch: int) -> None:
        # a load completing for the epoch we decided in changes nothing
        if self._decided_for != (epoch, self._subject()):
            self.stale = True

    def _denied_outcome(self) -> GuardOutcome:
        if self.strategy is RenderStrategy.FALLBACK_ON_DENY:
            return GuardOutcome.FALLBACK
        return GuardOutcome.NOTHING

    @property
    def outcome(self) -> GuardOutcome:
        """Outcome for the last decision, or the loading placeholder."""
        if self.show_loading and (self.facade.is_loading or self.granted is None):
            return GuardOutcome.LOADING
        if self.granted:
            return GuardOutcome.CHILDREN
        return self._denied_outcome()

    async def evaluate(self) -> GuardOutcome:
        before = (self.facade.epoch, self._subject())
        self.granted = await self.facade.check_permission(self.request, self.principal)
        self._decided_for = before
        self.stale = (self.facade.epoch, self._subject()) != before
        return self.outcome

    async def refresh_if_stale(self) -> GuardOutcome:
        if self.stale:
            return await self.evaluate()
        return self.outcome

    async def set_request(self, request: PermissionRequest) -> GuardOutcome:
        """Swap the request; only a change of (module, action, resource) re-evaluates."""
        changed = request.key != self.request.key
        self.request = request
        if changed or self.stale:
            self.granted = None
            return await self.evaluate()
        return self.outcome

    def close(self) -> None:
        self._unsubscribe()
