"""In-process event registry for approval workflow transitions.

The engine fires events after its transaction commits; handlers
(notifications, email) subscribe with ``on``. A failing handler is
logged and the remaining handlers still run.

Events:
    approval.submitted           request and its ledger persisted
    approval.step_assigned       a resolved approver now owns a step
    approval.step_approved       one level approved, request still pending
    approval.approved            last level approved, effect applied
    approval.rejected            a level rejected, request closed
    approval.auto_approve_failed auto-approval rolled back, request left pending
"""

import logging

logger = logging.getLogger('atlas.core.approvals.hooks')

EVENTS = (
    'approval.submitted',
    'approval.step_assigned',
    'approval.step_approved',
    'approval.approved',
    'approval.rejected',
    'approval.auto_approve_failed',
)

_registry: dict[str, list] = {}


def on(event_type: str, callback):
    if event_type not in EVENTS:
        raise ValueError(f'Unknown approval event: {event_type}')
    _registry.setdefault(event_type, []).append(callback)
    logger.debug(f'Registered hook for {event_type}: {callback.__name__}')


def fire(event_type: str, payload: dict):
    """Run every callback registered for event_type; errors never propagate."""
    for cb in list(_registry.get(event_type, [])):
        try:
            cb(payload)
        except Exception as e:
            logger.error(f'Hook error for {event_type} in {cb.__name__}: {e}', exc_info=True)


def clear(event_type: str = None):
    """Drop registered hooks (all, or one event type)."""
    if event_type:
        _registry.pop(event_type, None)
    else:
        _registry.clear()
