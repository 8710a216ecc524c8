"""
Helpers shared by the JSON views of every app.
"""

import json
import logging
from functools import wraps

from django.http import JsonResponse

from .exceptions import QuickBooksError, ValidationError

logger = logging.getLogger(__name__)


def api_login_required(view_func):
    """Like login_required, but answers 401 JSON instead of redirecting"""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({'error': 'Not authenticated'}, status=401)
        return view_func(request, *args, **kwargs)
    return wrapper


def json_body(request, required=True):
    """
    Decode the request body as a JSON object.

    Raises:
        ValidationError: body is not valid JSON, or not an object
    """
    if not request.body:
        if required:
            raise ValidationError('Request body is required', error_code='EMPTY_BODY')
        return {}
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError('Invalid JSON data', error_code='INVALID_JSON')
    if not isinstance(data, dict):
        raise ValidationError('JSON body must be an object', error_code='INVALID_JSON')
    return data


def error_response(exc):
    """Translate an integration error into its JSON response"""
    payload = {'error': exc.message}
    if exc.error_code:
        payload['code'] = exc.error_code
    if exc.status_code >= 500:
        logger.error(f"Request failed: {exc.message} ({exc.error_code})")
    return JsonResponse(payload, status=exc.status_code)


def handle_api_errors(view_func):
    """Turn QuickBooksError raised by a view into the matching JSON response"""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except QuickBooksError as exc:
            return error_response(exc)
    return wrapper
