"""Shared API utilities: request parsing, error helpers, pagination.

Every JSON route in the service answers with ``{'success': bool, ...}``.
"""

from flask import jsonify, request


# ============== Request Validation ==============

def get_json_or_error():
    """Get JSON from request body with null check.

    Returns (data, error_response) tuple. Caller pattern:
        data, error = get_json_or_error()
        if error:
            return error
    """
    data = request.get_json(silent=True)
    if data is None:
        return None, (jsonify({
            'success': False,
            'error': 'Invalid or missing JSON body',
        }), 400)
    return data, None


def get_pagination(default_limit=20, max_limit=200):
    """Read page/limit query args. Returns (page, limit, offset)."""
    try:
        page = max(int(request.args.get('page', 1)), 1)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = min(max(int(request.args.get('limit', default_limit)), 1), max_limit)
    except (TypeError, ValueError):
        limit = default_limit
    return page, limit, (page - 1) * limit


# ============== Error Handling ==============

def error_response(message, status_code, **extra):
    """Uniform JSON error body."""
    body = {'success': False, 'error': message}
    body.update(extra)
    return jsonify(body), status_code
