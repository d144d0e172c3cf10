"""
Finite state machine for one session's external cart.

    EMPTY --CART_CREATED/CART_ADOPTED--> ACTIVE
    ACTIVE --CART_REJECTED--> STALE
    STALE --CART_CREATED--> ACTIVE
    any --CART_CLEARED--> EMPTY

The backend rejecting the cart id moves the session to STALE; the next
mutating call must create a fresh cart before it proceeds.

Usage:
    sm = CartStateMachine()
    sm.transition(CartTrigger.CART_CREATED)
    assert sm.current_state == CartState.ACTIVE
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sommelier.errors import InvalidTransitionError

logger = logging.getLogger(__name__)


class CartState(str, Enum):
    EMPTY = "empty"
    ACTIVE = "active"
    STALE = "stale"


class CartTrigger(str, Enum):
    CART_CREATED = "cart_created"
    CART_ADOPTED = "cart_adopted"
    CART_REJECTED = "cart_rejected"
    CART_CLEARED = "cart_cleared"


# (from_state, trigger) -> to_state
CART_TRANSITIONS: dict[tuple[CartState, CartTrigger], CartState] = {
    (CartState.EMPTY, CartTrigger.CART_CREATED): CartState.ACTIVE,
    (CartState.EMPTY, CartTrigger.CART_ADOPTED): CartState.ACTIVE,
    (CartState.ACTIVE, CartTrigger.CART_REJECTED): CartState.STALE,
    (CartState.STALE, CartTrigger.CART_CREATED): CartState.ACTIVE,
    **{(state, CartTrigger.CART_CLEARED): CartState.EMPTY for state in CartState},
}


@dataclass(frozen=True)
class CartStateEntry:
    state: CartState
    trigger: Optional[CartTrigger] = None
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class CartStateMachine:
    def __init__(self) -> None:
        self._entries: list[CartStateEntry] = [CartStateEntry(CartState.EMPTY)]

    @property
    def current_state(self) -> CartState:
        return self._entries[-1].state

    def transition(self, trigger: CartTrigger) -> CartState:
        """Apply ``trigger`` and return the new state.

        Raises InvalidTransitionError when the trigger is not accepted in
        the current state; the state is left unchanged.
        """
        source = self.current_state
        target = CART_TRANSITIONS.get((source, trigger))
        if target is None:
            accepted = ", ".join(t.value for t in self.get_valid_triggers())
            raise InvalidTransitionError(
                f"Cart in state {source.value!r} cannot take {trigger.value!r}. "
                f"Valid triggers: {accepted}"
            )
        self._entries.append(CartStateEntry(target, trigger))
        logger.debug("Cart %s -[%s]-> %s", source.value, trigger.value, target.value)
        return target

    def get_valid_triggers(self) -> list[CartTrigger]:
        state = self.current_state
        return [trigger for (source, trigger) in CART_TRANSITIONS if source == state]

    def get_history(self) -> list[CartStateEntry]:
        return list(self._entries)

    def get_state_trace(self) -> list[str]:
        return [entry.state.value for entry in self._entries]
