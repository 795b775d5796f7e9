"""Workflow analytics: read-only views over requests and their approval ledgers.

Visibility follows the request listing scope (guard.analytics_scope), so
every figure counts only requests the caller could list. Progress and
timelines are built from the persisted ledger, which holds the chain as
it was resolved at submission.
"""

import logging
from datetime import date, datetime, timedelta

from .exceptions import ValidationError, NotFoundError, ForbiddenError
from .templates import REQUEST_TYPES

logger = logging.getLogger('atlas.core.approvals.analytics')

STATUSES = ('pending', 'approved', 'rejected')
RECENT_LIMIT = 10


def _timestamp(value):
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _hours(start, end):
    start, end = _timestamp(start), _timestamp(end)
    if start is None or end is None:
        return None
    return round((end - start).total_seconds() / 3600, 2)


def _percent(part, whole):
    return round(part * 100 / whole, 2) if whole else 0


def _parse_date(value, field):
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a date (YYYY-MM-DD)', field=field)


def _empty_counts():
    return {'total': 0, 'pending': 0, 'approved': 0, 'rejected': 0}


class WorkflowAnalytics:

    def __init__(self, request_repo, step_repo, guard):
        self._request_repo = request_repo
        self._step_repo = step_repo
        self.guard = guard

    def _filters(self, actor, **filters):
        """Caller filters narrowed by the actor's scope; None when nothing is visible."""
        scope = self.guard.analytics_scope(actor)
        if scope is None:
            return None
        filters.update(scope)
        return filters

    # ── Overview ──

    def overview(self, actor):
        """Counts by status and request type, plus the most recent requests."""
        filters = self._filters(actor)
        by_type = {t: _empty_counts() for t in REQUEST_TYPES}
        if filters is None:
            return {'total_requests': 0, 'by_status': {s: 0 for s in STATUSES},
                    'by_request_type': by_type, 'recent_requests': []}

        for row in self._request_repo.stats_by_type(**filters):
            by_type[row['request_type']] = {k: row[k] for k in ('total',) + STATUSES}

        recent = self._request_repo.list_requests(limit=RECENT_LIMIT, offset=0, **filters)
        return {
            'total_requests': sum(c['total'] for c in by_type.values()),
            'by_status': {s: sum(c[s] for c in by_type.values()) for s in STATUSES},
            'by_request_type': by_type,
            'recent_requests': recent['requests'],
        }

    # ── Per-request workflow ──

    @staticmethod
    def _step_view(step):
        return {
            'step_id': step['id'],
            'level': step['approval_level'],
            'status': step['status'],
            'approver': {
                'id': step['approver_id'],
                'full_name': step.get('approver_name'),
                'email': step.get('approver_email'),
                'role': step.get('approver_role') or 'Unknown',
            },
            'comments': step.get('comments') or '',
            'processed_at': step.get('processed_at'),
            'created_at': step.get('created_at'),
        }

    @staticmethod
    def current_level(steps):
        """Lowest pending level, or None once nothing is pending."""
        pending = [s['approval_level'] for s in steps if s['status'] == 'pending']
        return min(pending) if pending else None

    def workflow(self, request, steps):
        """Step list, progress, current step and timing of one request."""
        views = [self._step_view(s) for s in steps]
        counts = {s: sum(1 for v in views if v['status'] == s) for s in STATUSES}
        total = len(views)

        current = None
        rejected = [v for v in views if v['status'] == 'rejected']
        level = self.current_level(steps)
        if rejected:
            current = rejected[0]
        elif level is not None:
            current = next(v for v in views if v['level'] == level)
        elif views:
            current = views[-1]

        approved_at = sorted(
            _timestamp(s['processed_at']) for s in steps
            if s['status'] == 'approved' and s.get('processed_at'))
        gaps = [(b - a).total_seconds() / 3600 for a, b in zip(approved_at, approved_at[1:])]
        processed = [_timestamp(s['processed_at']) for s in steps if s.get('processed_at')]

        return {
            'steps': views,
            'progress': {
                'total_steps': total,
                'approved_steps': counts['approved'],
                'rejected_steps': counts['rejected'],
                'pending_steps': counts['pending'],
                'completion_percentage': round(counts['approved'] * 100 / total) if total else 0,
            },
            'current_step': current,
            'current_level': level if request['status'] == 'pending' else None,
            'metrics': {
                'started_at': request.get('created_at'),
                'last_activity_at': max(processed).isoformat() if processed
                else request.get('created_at'),
                'average_step_time_hours': round(sum(gaps) / len(gaps), 2) if gaps else None,
                'total_duration_hours': _hours(request.get('created_at'),
                                               request.get('processed_at')),
            },
        }

    def details(self, actor, status=None, request_type=None, division_id=None,
                search=None, limit=20, offset=0):
        """Filtered request page, each request with its workflow. Returns {'items', 'total'}."""
        filters = self._filters(actor, status=status, request_type=request_type,
                                division_id=division_id, search=search)
        if filters is None:
            return {'items': [], 'total': 0}

        page = self._request_repo.list_requests(limit=limit, offset=offset, **filters)
        items = []
        for request in page['requests']:
            steps = self._step_repo.get_for_request(request['request_type'], request['id'])
            items.append({'request': request, 'workflow': self.workflow(request, steps)})
        return {'items': items, 'total': page['total']}

    def timeline(self, request_id, actor):
        """Chronological events of one request with its current workflow state.

        Raises:
            NotFoundError: unknown request
            ForbiddenError: request outside the actor's scope
        """
        request = self._request_repo.get_by_id(request_id)
        if not request:
            raise NotFoundError(f'Request {request_id} not found')
        steps = self._step_repo.get_for_request(request['request_type'], request_id)
        approver_ids = {s['approver_id'] for s in steps}
        if not (self.guard.can_view_request(actor, request, approver_ids)
                or self.guard.analytics_scope(actor) == {}):
            raise ForbiddenError('Access denied', request_id=request_id)

        events = [{
            'type': 'request_created',
            'timestamp': request.get('created_at'),
            'actor': {'id': request.get('requested_by'), 'full_name': request.get('requested_by_name')},
            'description': f"Request {request['request_type']} created",
            'data': {'requester_name': request.get('requester_name'), 'email': request.get('email')},
        }]
        for step in steps:
            name = step.get('approver_name') or 'Unknown'
            events.append({
                'type': f"approval_{step['status']}",
                'timestamp': step.get('created_at') if step['status'] == 'pending'
                else step.get('processed_at'),
                'actor': {'id': step['approver_id'], 'full_name': step.get('approver_name')},
                'description': f"Level {step['approval_level']} {step['status']} by {name}",
                'data': {
                    'approval_level': step['approval_level'],
                    'status': step['status'],
                    'comments': step.get('comments'),
                    'approver_role': step.get('approver_role') or 'Unknown',
                },
            })
        if request['status'] != 'pending' and request.get('processed_at'):
            events.append({
                'type': f"request_{request['status']}",
                'timestamp': request['processed_at'],
                'actor': {'id': request.get('approved_by'),
                          'full_name': request.get('approved_by_name')},
                'description': f"Request {request['status']}",
                'data': {'status': request['status']},
            })

        # Untimestamped events sort last
        events.sort(key=lambda e: (e['timestamp'] is None, _timestamp(e['timestamp']) or datetime.min))

        workflow = self.workflow(request, steps)
        return {
            'request': request,
            'workflow_steps': workflow['steps'],
            'current_level': workflow['current_level'],
            'timeline': events,
        }

    # ── Statistics ──

    def statistics(self, actor, request_type=None, start_date=None, end_date=None):
        """Totals, approval/rejection rates and mean approval time, overall and per type.

        start_date and end_date are inclusive ISO dates on the creation date.
        """
        start = _parse_date(start_date, 'start_date')
        end = _parse_date(end_date, 'end_date')
        if start and end and start > end:
            raise ValidationError('start_date must not be after end_date', field='start_date')

        by_type = {t: dict(_empty_counts(), average_approval_time_hours=0) for t in REQUEST_TYPES}
        filters = self._filters(actor, request_type=request_type, created_from=start,
                                created_before=end + timedelta(days=1) if end else None)
        rows = self._request_repo.stats_by_type(**filters) if filters is not None else []

        timed = 0
        hours = 0.0
        for row in rows:
            row_hours = float(row['approval_hours'] or 0)
            by_type[row['request_type']] = {
                **{k: row[k] for k in ('total',) + STATUSES},
                'average_approval_time_hours':
                    round(row_hours / row['timed_approvals'], 2) if row['timed_approvals'] else 0,
            }
            timed += row['timed_approvals']
            hours += row_hours

        totals = {s: sum(c[s] for c in by_type.values()) for s in STATUSES}
        total = sum(c['total'] for c in by_type.values())
        return {
            'total_requests': total,
            'pending_requests': totals['pending'],
            'approved_requests': totals['approved'],
            'rejected_requests': totals['rejected'],
            'average_approval_time_hours': round(hours / timed, 2) if timed else 0,
            'approval_rate': _percent(totals['approved'], total),
            'rejection_rate': _percent(totals['rejected'], total),
            'by_request_type': by_type,
            'by_status': totals,
        }
