# Overview: Post-commit change notifications for visits, seats and drink counts.

"""
In-process pub/sub for dashboard consumers.

Services publish only after their transaction has committed, so a
subscriber never observes a change that was later rolled back. Delivery is
synchronous in the publishing request; subscribers that need a different
transport (SSE, websockets) bridge from here.

Every signal is sent with keyword arguments ``visit_id`` and ``kind``.
"""

from __future__ import annotations

import logging

from blinker import Namespace
from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

_signals = Namespace()

visit_changed = _signals.signal("visit-changed")
seat_changed = _signals.signal("seat-changed")
drink_count_changed = _signals.signal("drink-count-changed")

ALL_SIGNALS = (visit_changed, seat_changed, drink_count_changed)


def publish(signal, *, visit_id: str, kind: str, **extra) -> None:
    sender = current_app._get_current_object() if has_app_context() else None
    try:
        signal.send(sender, visit_id=visit_id, kind=kind, **extra)
    except Exception:
        # Mutation is already committed; subscriber failures are only logged
        logger.exception("Change subscriber failed (signal=%s, visit=%s, kind=%s)", signal.name, visit_id, kind)
