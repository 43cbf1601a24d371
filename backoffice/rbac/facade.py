"""
Evaluation façade — the async surface guards and routes call.

State machine:
  UNINITIALIZED → LOADING → READY
  READY → LOADING   on refresh_permissions() or a principal change
  LOADING → FAILED  when bootstrap fails (next check retries)

The catalog and each user's overlay are cached as immutable snapshots
tagged with the refresh epoch they were loaded in. A refresh bumps the
epoch, so any check issued after it returns loads fresh data. Concurrent
loads of the same snapshot in the same epoch share one task.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Optional

from backoffice.utils import Logger
from backoffice.utils.exceptions import BootstrapError

from .bootstrap import BootstrapInitializer
from .catalog import PermissionCatalog
from .engine import evaluate
from .types import PermissionRequest, PermissionResult, Principal, UserPermission

logger = Logger(__name__)

ERROR_REASON = "Error checking permission"
NOT_INITIALIZED_REASON = "Permission system not initialized"
USER_NOT_FOUND_REASON = "User not found"

Listener = Callable[[int], None]


class FacadeState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class PermissionFacade:
    def __init__(self, store, bootstrap: Optional[BootstrapInitializer] = None):
        self.store = store
        self.bootstrap = bootstrap if bootstrap is not None else BootstrapInitializer(store)

        self._epoch = 0
        self._state = FacadeState.UNINITIALIZED
        self._catalog: Optional[tuple[int, PermissionCatalog]] = None
        self._overlays: dict[str, tuple[int, Optional[UserPermission]]] = {}
        self._inflight: dict[tuple, asyncio.Future] = {}
        self._loading = 0
        self._bootstrapped_epoch: Optional[int] = None

        self._principal: Optional[Principal] = None
        self._principal_generation = 0
        self._listeners: list[Listener] = []

    # ── Observable state ────────────────────────────────────────
    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def state(self) -> FacadeState:
        return self._state

    @property
    def is_loading(self) -> bool:
        """True exactly while a catalog/overlay fetch or the bootstrap is running."""
        return self._loading > 0

    @property
    def principal(self) -> Optional[Principal]:
        return self._principal

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener(epoch)` whenever cached permissions may have changed."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._epoch)
            except Exception:
                logger.exception("Permission listener failed")

    # ── Invalidation ────────────────────────────────────────────
    def refresh_permissions(self) -> int:
        """Drop every cached snapshot. Returns the new epoch."""
        self._epoch += 1
        self._catalog = None
        self._overlays.clear()
        self._state = FacadeState.LOADING
        logger.debug(f"Permissions refreshed (epoch {self._epoch})")
        self._notify()
        return self._epoch

    def set_principal(self, principal: Optional[Principal]) -> None:
        """Switch the session's current user; in-flight checks for the old one are discarded."""
        if principal == self._principal:
            return
        self._principal = principal
        self._principal_generation += 1
        if self._state is FacadeState.READY:
            self._state = FacadeState.LOADING
        self._notify()

    async def initialize(self) -> PermissionCatalog:
        """Load the catalog (seeding it if empty) ahead of the first check."""
        return await self._get_catalog()

    # ── Loading ─────────────────────────────────────────────────
    async def _coalesce(self, key: tuple, factory: Callable[[], Awaitable]):
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._inflight[key] = task
            task.add_done_callback(lambda _t: self._inflight.pop(key, None))
        # shield: one cancelled caller must not cancel the shared fetch
        return await asyncio.shield(task)

    async def _get_catalog(self) -> PermissionCatalog:
        epoch = self._epoch
        if self._catalog is not None and self._catalog[0] == epoch:
            return self._catalog[1]
        return await self._coalesce(("catalog", epoch), lambda: self._load_catalog(epoch))

    async def _load_catalog(self, epoch: int) -> PermissionCatalog:
        self._loading += 1
        if self._state is not FacadeState.READY:
            self._state = FacadeState.LOADING
        try:
            permissions, roles = await self.store.fetch_catalog()
            if (not permissions or not roles) and self._bootstrapped_epoch != epoch:
                await self._run_bootstrap(epoch)
                permissions, roles = await self.store.fetch_catalog()
            catalog = PermissionCatalog(permissions, roles)
        finally:
            self._loading -= 1

        if epoch == self._epoch:
            self._catalog = (epoch, catalog)
            if self._state is not FacadeState.READY:
                self._state = FacadeState.READY
                self._notify()
        return catalog

    async def _run_bootstrap(self, epoch: int) -> None:
        self._bootstrapped_epoch = epoch
        try:
            await self.bootstrap.run()
        except Exception as exc:
            self._bootstrapped_epoch = None
            self._state = FacadeState.FAILED
            if isinstance(exc, BootstrapError):
                raise
            raise BootstrapError(str(exc)) from exc

    async def _get_overlay(self, user_id: str) -> Optional[UserPermission]:
        epoch = self._epoch
        cached = self._overlays.get(user_id)
        if cached is not None and cached[0] == epoch:
            return cached[1]
        return await self._coalesce(
            ("overlay", user_id, epoch), lambda: self._load_overlay(user_id, epoch)
        )

    async def _load_overlay(self, user_id: str, epoch: int) -> Optional[UserPermission]:
        self._loading += 1
        try:
            overlay = await self.store.fetch_overlay(user_id)
        finally:
            self._loading -= 1
        if epoch == self._epoch:
            self._overlays[user_id] = (epoch, overlay)
        return overlay

    # ── Checks ──────────────────────────────────────────────────
    async def _evaluate_for(
        self, request: PermissionRequest, caller: Principal
    ) -> PermissionResult:
        catalog = await self._get_catalog()
        if request.user_id and request.user_id != caller.id:
            overlay = await self._get_overlay(request.user_id)
            if overlay is None:
                return PermissionResult(granted=False, reason=USER_NOT_FOUND_REASON)
            subject = Principal(id=request.user_id, role_id=overlay.role_id)
        else:
            overlay = await self._get_overlay(caller.id)
            subject = caller
        return evaluate(request, subject, overlay, catalog)

    async def check_permission_with_result(
        self,
        request: PermissionRequest,
        principal: Optional[Principal] = None,
    ) -> PermissionResult:
        """
        Evaluate `request` for `principal` (default: the session's current user).

        Never raises: storage and bootstrap failures deny.
        """
        while True:
            generation = self._principal_generation
            caller = principal if principal is not None else self._principal
            if caller is None:
                return evaluate(request, None, None, PermissionCatalog.empty())

            try:
                result = await self._evaluate_for(request, caller)
            except BootstrapError:
                logger.exception("Permission bootstrap failed")
                result = PermissionResult(granted=False, reason=NOT_INITIALIZED_REASON)
            except Exception:
                logger.exception(
                    f"Error checking {request.module.value}:{request.action.value} "
                    f"for {caller.id}"
                )
                result = PermissionResult(granted=False, reason=ERROR_REASON)

            if principal is None and generation != self._principal_generation:
                logger.debug("Current user changed during permission check, re-evaluating")
                continue
            return result

    async def check_permission(
        self,
        request: PermissionRequest,
        principal: Optional[Principal] = None,
    ) -> bool:
        result = await self.check_permission_with_result(request, principal)
        return result.granted
