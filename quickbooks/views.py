"""
QuickBooks Views
----------------
OAuth connect/disconnect, connection status, and read-only lookups
(accounts, contacts, company info, reports) used by the posting screens.
"""

import logging
import secrets

from django.conf import settings
from django.http import JsonResponse, HttpResponseRedirect
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from .api_utils import api_login_required, handle_api_errors, json_body
from .credentials import CredentialManager, CredentialState
from .exceptions import ValidationError
from .models import QBOCredential
from .services import build_oauth_client, quickbooks_session, resolve_company

logger = logging.getLogger(__name__)

OAUTH_STATE_SESSION_KEY = 'qbo_oauth_state'

REPORT_PARAMS = ('start_date', 'end_date', 'date', 'summarize_column_by', 'accounting_method')


# --- OAuth ---

@api_login_required
@require_http_methods(["GET"])
def auth_start(request):
    """Redirect to the Intuit consent page"""
    state = secrets.token_urlsafe(24)
    request.session[OAUTH_STATE_SESSION_KEY] = state

    oauth_client = build_oauth_client()
    try:
        authorize_uri = oauth_client.authorize_uri(state)
    finally:
        oauth_client.close()
    return HttpResponseRedirect(authorize_uri)


@api_login_required
@require_http_methods(["GET"])
@handle_api_errors
def auth_callback(request):
    """Complete the OAuth flow and persist the credential"""
    code = request.GET.get('code')
    state = request.GET.get('state')
    realm_id = request.GET.get('realmId')

    if not code or not realm_id:
        return JsonResponse({'error': 'Missing code or realmId'}, status=400)

    expected_state = request.session.pop(OAUTH_STATE_SESSION_KEY, None)
    if not expected_state or not secrets.compare_digest(expected_state, state or ''):
        logger.warning(f"[QBO] OAuth state mismatch for realm {realm_id}")
        return JsonResponse({'error': 'Invalid OAuth state'}, status=400)

    with quickbooks_session() as gateway:
        credentials = gateway.credentials

        # Dev servers and double clicks can deliver the same callback twice
        if credentials.was_recently_connected(realm_id, request.user):
            logger.info(f"[QBO] Realm {realm_id} connected moments ago, skipping code exchange")
            return HttpResponseRedirect(settings.QBO_POST_CONNECT_REDIRECT)

        credential = credentials.authorize(code, realm_id, request.user, gateway)

    logger.info(f"[QBO] Connected {credential.display_name} ({realm_id}) for user {request.user.pk}")
    return HttpResponseRedirect(settings.QBO_POST_CONNECT_REDIRECT)


# --- Connection state ---

@api_login_required
@require_http_methods(["GET"])
def status(request):
    """Whether the company has a usable (or refreshable) credential"""
    queryset = QBOCredential.objects.filter(user=request.user, is_active=True)
    company_id = request.GET.get('companyId')
    if company_id:
        queryset = queryset.filter(realm_id=company_id)
    credential = queryset.order_by('-created_at').first()

    state = CredentialManager(oauth_client=None).state_of(credential)
    is_connected = state in (CredentialState.VALID, CredentialState.EXPIRED)

    return JsonResponse({
        'isConnected': is_connected,
        'state': state.value,
        'lastSync': credential.created_at.isoformat() if credential and is_connected else None,
    })


@csrf_exempt
@api_login_required
@require_http_methods(["POST"])
@handle_api_errors
def disconnect(request):
    """Deactivate one connection, or all of the user's connections"""
    data = json_body(request, required=False)
    company_id = data.get('companyId')
    manager = CredentialManager(oauth_client=None)

    if company_id:
        credential = resolve_company(request.user, company_id, require_active=False)
        manager.revoke(credential.realm_id)
    else:
        for credential in manager.list_companies(request.user):
            manager.revoke(credential.realm_id)

    return JsonResponse({'success': True})


@api_login_required
@require_http_methods(["GET"])
def companies(request):
    """Companies connected by this user"""
    include_inactive = request.GET.get('all') == 'true'
    manager = CredentialManager(oauth_client=None)
    return JsonResponse([
        {
            'id': credential.realm_id,
            'name': credential.display_name,
            'isActive': credential.is_active,
        }
        for credential in manager.list_companies(request.user, include_inactive)
    ], safe=False)


# --- Lookups ---

@api_login_required
@require_http_methods(["GET"])
@handle_api_errors
def accounts(request):
    """Chart of accounts, or bank accounts only with ?type=Bank"""
    credential = resolve_company(request.user, request.GET.get('companyId'))
    account_type = request.GET.get('type')
    logger.info(f"[API] Fetching accounts for company {credential.realm_id}, type {account_type}")

    with quickbooks_session() as gateway:
        if account_type == 'Bank':
            data = gateway.get_bank_accounts(credential.realm_id)
        else:
            data = gateway.get_chart_of_accounts(credential.realm_id)
    return JsonResponse(data, safe=False)


@api_login_required
@require_http_methods(["GET"])
@handle_api_errors
def vendors(request):
    credential = resolve_company(request.user, request.GET.get('companyId'))
    with quickbooks_session() as gateway:
        data = gateway.get_vendors(credential.realm_id)
    return JsonResponse(data, safe=False)


@api_login_required
@require_http_methods(["GET"])
@handle_api_errors
def customers(request):
    credential = resolve_company(request.user, request.GET.get('companyId'))
    with quickbooks_session() as gateway:
        data = gateway.get_customers(credential.realm_id)
    return JsonResponse(data, safe=False)


@api_login_required
@require_http_methods(["GET"])
@handle_api_errors
def company_info(request):
    company_id = request.GET.get('companyId')
    if not company_id:
        raise ValidationError('Company ID required', error_code='MISSING_COMPANY')
    credential = resolve_company(request.user, company_id)

    with quickbooks_session() as gateway:
        info = gateway.get_company_info(credential.realm_id)
    return JsonResponse(info or {})


@api_login_required
@require_http_methods(["GET"])
@handle_api_errors
def report(request, report_name):
    """Pass-through for the standard QuickBooks reports"""
    credential = resolve_company(request.user, request.GET.get('companyId'))
    params = {key: request.GET.get(key) for key in REPORT_PARAMS}
    logger.info(f"[API] Fetching {report_name} for company {credential.realm_id}")

    with quickbooks_session() as gateway:
        data = gateway.get_report(credential.realm_id, report_name, **params)

    if not data:
        return JsonResponse({'error': 'No report data returned from QuickBooks'}, status=502)
    return JsonResponse(data)
