from sommelier.cart.session_manager import CartSession, CartSessionManager, CommerceBackend
from sommelier.cart.state_machine import CartState, CartStateMachine, CartTrigger

__all__ = [
    "CartSessionManager",
    "CartSession",
    "CommerceBackend",
    "CartStateMachine",
    "CartState",
    "CartTrigger",
]
