"""
Bank Entries Views
------------------
Posting endpoint for classified bank rows.
"""

import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from quickbooks.api_utils import api_login_required, handle_api_errors, json_body
from quickbooks.services import quickbooks_session, resolve_company
from .services import TransactionPostingService

logger = logging.getLogger(__name__)


@csrf_exempt
@api_login_required
@require_http_methods(["POST"])
@handle_api_errors
def post_transactions(request):
    """
    Post a batch of rows to QuickBooks.

    Body: {companyId, bankAccountId?, transactions: [...]}
    Partial failure still answers 200 with the per-row tally.
    """
    data = json_body(request)
    transactions = data.get('transactions')
    if not isinstance(transactions, list) or not transactions \
            or not all(isinstance(row, dict) for row in transactions):
        return JsonResponse({'error': 'No transactions provided'}, status=400)

    credential = resolve_company(request.user, data.get('companyId'))
    logger.info(f"[API] Posting {len(transactions)} transactions for company {credential.realm_id}")

    with quickbooks_session() as gateway:
        service = TransactionPostingService(gateway)
        result = service.post(
            credential.realm_id,
            transactions,
            bank_account_id=data.get('bankAccountId'),
        )

    return JsonResponse(result.to_dict())
