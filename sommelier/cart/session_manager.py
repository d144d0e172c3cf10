"""
Cart session manager: owns the mapping from a conversation to one external cart.

Guarantees:
    * at most one external cart id is current for a session key;
    * operations on the same session key run one at a time, in arrival
      order (one asyncio.Lock per key, held for the whole operation);
    * operations on different session keys proceed in parallel;
    * a cart id the backend no longer recognises moves the session to
      STALE, and the next add creates a fresh cart and retries once;
    * a cleared cart id is never adopted again.

Sessions left EMPTY are dropped once no call is using them, and the
least recently used idle sessions are evicted past ``max_sessions``.

Upstream failures are not retried; they propagate to the dispatcher.
"""

import asyncio
from collections import Counter, OrderedDict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional, Protocol

from sommelier.cart.state_machine import CartState, CartStateMachine, CartTrigger
from sommelier.errors import CartEmptyError, CartNotFoundError, NotFoundError
from sommelier.logging_context import get_call_logger
from sommelier.schemas.cart_schema import CartLine, CartSnapshot, CartTotals, CommerceProduct

logger = get_call_logger(__name__)


class CommerceBackend(Protocol):
    """Cart/product operations the session manager and handlers rely on."""

    async def create_cart(self) -> CartSnapshot: ...

    async def get_cart(self, cart_id: str) -> Optional[CartSnapshot]: ...

    async def add_line(self, cart_id: str, merchandise_id: str, quantity: int) -> CartSnapshot: ...

    async def update_line(self, cart_id: str, line_id: str, quantity: int) -> CartSnapshot: ...

    async def remove_line(self, cart_id: str, line_id: str) -> CartSnapshot: ...

    async def search_products(
        self, query: str, first: Optional[int] = None
    ) -> list[CommerceProduct]: ...


@dataclass
class CartSession:
    """Per-session cart state. Only the manager mutates it, under the session lock."""

    session_key: str
    external_cart_id: Optional[str] = None
    last_synced_totals: Optional[CartTotals] = None
    machine: CartStateMachine = field(default_factory=CartStateMachine)

    @property
    def state(self) -> CartState:
        return self.machine.current_state

    def activate(self, snapshot: CartSnapshot, trigger: CartTrigger) -> None:
        self.machine.transition(trigger)
        self.external_cart_id = snapshot.id
        self.sync(snapshot)

    def sync(self, snapshot: CartSnapshot) -> None:
        self.last_synced_totals = snapshot.totals()

    def mark_stale(self) -> None:
        if self.state is CartState.ACTIVE:
            self.machine.transition(CartTrigger.CART_REJECTED)
        self.external_cart_id = None

    def clear(self) -> None:
        self.machine.transition(CartTrigger.CART_CLEARED)
        self.external_cart_id = None
        self.last_synced_totals = None


DEFAULT_MAX_SESSIONS = 10_000


class CartSessionManager:
    def __init__(self, gateway: CommerceBackend, max_sessions: int = DEFAULT_MAX_SESSIONS) -> None:
        if max_sessions < 1:
            raise ValueError(f"max_sessions must be >= 1, got {max_sessions}")
        self._gateway = gateway
        self._max_sessions = max_sessions
        self._sessions: OrderedDict[str, CartSession] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}
        self._in_use: Counter[str] = Counter()
        # cart ids cleared by a shopper; never adopted again
        self._cleared: OrderedDict[str, None] = OrderedDict()

    def session(self, session_key: str) -> CartSession:
        """The stored session, or a fresh EMPTY one that is not kept."""
        return self._sessions.get(session_key) or CartSession(session_key=session_key)

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    @property
    def lock_count(self) -> int:
        return len(self._locks)

    def _session(self, session_key: str) -> CartSession:
        session = self._sessions.get(session_key)
        if session is None:
            session = self._sessions[session_key] = CartSession(session_key=session_key)
        self._sessions.move_to_end(session_key)
        return session

    @asynccontextmanager
    async def _locked(self, session_key: str) -> AsyncIterator[None]:
        self._in_use[session_key] += 1
        lock = self._locks.setdefault(session_key, asyncio.Lock())
        try:
            async with lock:
                yield
        finally:
            self._in_use[session_key] -= 1
            if not self._in_use[session_key]:
                del self._in_use[session_key]
                self._release(session_key)

    def _release(self, session_key: str) -> None:
        """Drop the idle key's lock, its session if EMPTY, and any overflow."""
        self._locks.pop(session_key, None)
        session = self._sessions.get(session_key)
        if session is not None and session.state is CartState.EMPTY:
            del self._sessions[session_key]
        if len(self._sessions) <= self._max_sessions:
            return
        for key in [k for k in self._sessions if k not in self._in_use]:
            if len(self._sessions) <= self._max_sessions:
                break
            del self._sessions[key]
            logger.info("Evicted idle cart session %s", key)

    def _retire(self, cart_id: Optional[str]) -> None:
        if not cart_id:
            return
        self._cleared[cart_id] = None
        self._cleared.move_to_end(cart_id)
        while len(self._cleared) > self._max_sessions:
            self._cleared.popitem(last=False)

    # ------------------------------------------------------------------ #
    # Public operations
    # ------------------------------------------------------------------ #

    async def ensure_cart(self, session_key: str, cart_hint: Optional[str] = None) -> str:
        """Return the session's current cart id, creating a cart if needed."""
        async with self._locked(session_key):
            return await self._ensure(self._session(session_key), cart_hint)

    async def add_line(
        self,
        session_key: str,
        merchandise_id: str,
        quantity: int,
        cart_hint: Optional[str] = None,
    ) -> CartSnapshot:
        async with self._locked(session_key):
            session = self._session(session_key)
            cart_id = await self._ensure(session, cart_hint)
            try:
                snapshot = await self._gateway.add_line(cart_id, merchandise_id, quantity)
            except CartNotFoundError:
                logger.warning("Cart %s rejected as stale, creating a new one", cart_id)
                session.mark_stale()
                cart_id = await self._ensure(session, None)
                try:
                    snapshot = await self._gateway.add_line(cart_id, merchandise_id, quantity)
                except CartNotFoundError:
                    session.mark_stale()
                    raise
            session.sync(snapshot)
            logger.info(
                "Added %s x %s to cart %s (total items %d)",
                quantity, merchandise_id, cart_id, snapshot.total_quantity,
            )
            return snapshot

    async def update_quantity(
        self,
        session_key: str,
        quantity: int,
        line_id: Optional[str] = None,
        title: Optional[str] = None,
        cart_hint: Optional[str] = None,
    ) -> CartSnapshot:
        """Set a line's quantity. Zero removes the line."""
        async with self._locked(session_key):
            session = self._session(session_key)
            cart_id = await self._require_active(session, cart_hint)
            line = await self._find_line(session, cart_id, line_id, title)
            try:
                if quantity == 0:
                    snapshot = await self._gateway.remove_line(cart_id, line.id)
                else:
                    snapshot = await self._gateway.update_line(cart_id, line.id, quantity)
            except CartNotFoundError:
                session.mark_stale()
                raise
            session.sync(snapshot)
            return snapshot

    async def remove_line(
        self,
        session_key: str,
        line_id: Optional[str] = None,
        title: Optional[str] = None,
        cart_hint: Optional[str] = None,
    ) -> CartSnapshot:
        async with self._locked(session_key):
            session = self._session(session_key)
            cart_id = await self._require_active(session, cart_hint)
            line = await self._find_line(session, cart_id, line_id, title)
            try:
                snapshot = await self._gateway.remove_line(cart_id, line.id)
            except CartNotFoundError:
                session.mark_stale()
                raise
            session.sync(snapshot)
            return snapshot

    async def read_cart(
        self, session_key: str, cart_hint: Optional[str] = None
    ) -> Optional[CartSnapshot]:
        """Current cart contents, or None. Never creates a cart."""
        async with self._locked(session_key):
            session = self._sessions.get(session_key)
            if session is not None and session.state is CartState.ACTIVE:
                self._sessions.move_to_end(session_key)
                snapshot = await self._gateway.get_cart(session.external_cart_id)
                if snapshot is None:
                    logger.warning("Cart %s no longer exists", session.external_cart_id)
                    session.mark_stale()
                    return None
                session.sync(snapshot)
                return snapshot
            if (session is None or session.state is CartState.EMPTY) and cart_hint:
                return await self._adopt(self._session(session_key), cart_hint)
            return None

    async def clear(self, session_key: str, cart_hint: Optional[str] = None) -> None:
        """Forget the session's cart for good; the next add starts a new one."""
        async with self._locked(session_key):
            session = self._sessions.get(session_key)
            self._retire(cart_hint)
            if session is not None:
                self._retire(session.external_cart_id)
                session.clear()
            logger.info("Cleared cart for session %s", session_key)

    # ------------------------------------------------------------------ #
    # Helpers (caller holds the session lock)
    # ------------------------------------------------------------------ #

    async def _ensure(self, session: CartSession, cart_hint: Optional[str]) -> str:
        if session.state is CartState.ACTIVE and session.external_cart_id:
            return session.external_cart_id
        if session.state is CartState.EMPTY and cart_hint:
            adopted = await self._adopt(session, cart_hint)
            if adopted is not None:
                return adopted.id
            logger.info("Cart hint %s is not valid, creating a new cart", cart_hint)
        snapshot = await self._gateway.create_cart()
        session.activate(snapshot, CartTrigger.CART_CREATED)
        logger.info("Session %s now uses cart %s", session.session_key, snapshot.id)
        return snapshot.id

    async def _adopt(self, session: CartSession, cart_id: str) -> Optional[CartSnapshot]:
        if cart_id in self._cleared:
            logger.info("Cart %s was cleared, not adopting it", cart_id)
            return None
        snapshot = await self._gateway.get_cart(cart_id)
        if snapshot is None:
            return None
        session.activate(snapshot, CartTrigger.CART_ADOPTED)
        return snapshot

    async def _require_active(self, session: CartSession, cart_hint: Optional[str]) -> str:
        if session.state is CartState.ACTIVE and session.external_cart_id:
            return session.external_cart_id
        if session.state is CartState.EMPTY and cart_hint:
            adopted = await self._adopt(session, cart_hint)
            if adopted is not None:
                return adopted.id
        raise CartEmptyError(f"session {session.session_key} has no active cart")

    async def _find_line(
        self,
        session: CartSession,
        cart_id: str,
        line_id: Optional[str],
        title: Optional[str],
    ) -> CartLine:
        if line_id and not title:
            return CartLine(id=line_id, merchandise_id="", quantity=1)
        snapshot = await self._gateway.get_cart(cart_id)
        if snapshot is None:
            session.mark_stale()
            raise CartNotFoundError(cart_id)
        line = snapshot.find_line(line_id=line_id, title=title)
        if line is None:
            reference = title or line_id
            raise NotFoundError(
                f"no line matching {reference!r} in cart {cart_id}",
                user_message=f"I couldn't find {reference} in your cart.",
            )
        return line
