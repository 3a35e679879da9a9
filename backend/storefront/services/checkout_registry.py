"""Process-local registry of in-progress checkout controllers."""

from __future__ import annotations

from collections import OrderedDict
from uuid import UUID, uuid4

from storefront.services.checkout_service import CheckoutController

_MAX_SESSIONS = 1000

_controllers: OrderedDict[UUID, CheckoutController] = OrderedDict()


def register(controller: CheckoutController) -> UUID:
    """Store a controller and return its session id, evicting the oldest when full."""
    session_id = uuid4()
    _controllers[session_id] = controller
    while len(_controllers) > _MAX_SESSIONS:
        _, evicted = _controllers.popitem(last=False)
        evicted.close()
    return session_id


def get(session_id: UUID) -> CheckoutController | None:
    return _controllers.get(session_id)


def discard(session_id: UUID) -> bool:
    controller = _controllers.pop(session_id, None)
    if controller is None:
        return False
    controller.close()
    return True


def clear() -> None:
    """Drop every session (mainly for tests)."""
    for controller in _controllers.values():
        controller.close()
    _controllers.clear()
