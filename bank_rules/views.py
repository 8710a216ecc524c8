"""
Bank Rules Views
----------------
JSON CRUD for classification rules, plus the endpoint that applies them to
an uploaded batch.
"""

import logging

from django.db import transaction as db_transaction
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from quickbooks.api_utils import api_login_required, handle_api_errors, json_body
from quickbooks.exceptions import ValidationError
from quickbooks.services import resolve_company
from . import get_rules_enabled
from .models import BankRule, BankRuleCondition
from .services import classify

logger = logging.getLogger(__name__)

VALID_OPERATORS = {choice for choice, _ in BankRuleCondition.OPERATOR_CHOICES}
VALID_RULE_TYPES = {choice for choice, _ in BankRule.RULE_TYPE_CHOICES}


def _clean_match_logic(value):
    try:
        return BankRule.normalize_match_logic(value)
    except ValueError as exc:
        raise ValidationError(str(exc), error_code='INVALID_MATCH_TYPE')


def _clean_rule_type(value):
    rule_type = value or 'Expense'
    if rule_type not in VALID_RULE_TYPES:
        raise ValidationError(f"Unknown rule type: {rule_type}", error_code='INVALID_RULE_TYPE')
    return rule_type


def _clean_actions(actions):
    if actions is None:
        return {}
    if not isinstance(actions, dict):
        raise ValidationError('actions must be an object', error_code='INVALID_ACTIONS')
    return actions


def _clean_conditions(conditions):
    """Validate the incoming condition list; returns (field, operator, value) tuples"""
    if not isinstance(conditions, list):
        raise ValidationError('conditions must be a list', error_code='INVALID_CONDITIONS')

    cleaned = []
    for index, condition in enumerate(conditions):
        if not isinstance(condition, dict):
            raise ValidationError(f"Condition {index + 1} must be an object", error_code='INVALID_CONDITIONS')
        field = str(condition.get('field') or '').strip()
        operator = condition.get('operator')
        if not field:
            raise ValidationError(f"Condition {index + 1} has no field", error_code='INVALID_CONDITIONS')
        if operator not in VALID_OPERATORS:
            raise ValidationError(
                f"Condition {index + 1} has unknown operator: {operator}",
                error_code='INVALID_CONDITIONS',
            )
        value = condition.get('value')
        cleaned.append((field, operator, '' if value is None else str(value)))
    return cleaned


def _replace_conditions(rule, conditions):
    rule.conditions.all().delete()
    BankRuleCondition.objects.bulk_create([
        BankRuleCondition(rule=rule, field=field, operator=operator, value=value, order=order)
        for order, (field, operator, value) in enumerate(conditions)
    ])


def _get_owned_rule(request, rule_id):
    return (
        BankRule.objects
        .filter(pk=rule_id, company__user=request.user)
        .prefetch_related('conditions')
        .first()
    )


@csrf_exempt
@api_login_required
@require_http_methods(["GET", "POST"])
@handle_api_errors
def rules(request):
    """GET: list a company's rules. POST: create a rule."""
    if request.method == 'GET':
        company = resolve_company(request.user, request.GET.get('companyId'), require_active=False)
        queryset = BankRule.objects.for_company(company.realm_id).prefetch_related('conditions')
        return JsonResponse([rule.to_dict() for rule in queryset], safe=False)

    data = json_body(request)
    company = resolve_company(request.user, data.get('client_id') or data.get('companyId'))

    name = str(data.get('rule_name') or '').strip()
    if not name:
        raise ValidationError('rule_name is required', error_code='MISSING_NAME')

    conditions = _clean_conditions(data.get('conditions') or [])
    actions = _clean_actions(data.get('actions'))

    with db_transaction.atomic():
        rule = BankRule.objects.create(
            company=company,
            name=name,
            match_logic=_clean_match_logic(data.get('matchType')),
            rule_type=_clean_rule_type(data.get('rule_type')),
            suggested_ledger=actions.get('ledger') or '',
            suggested_contact_id=str(actions.get('contactId') or ''),
            is_active=True,
            created_by=request.user,
        )
        _replace_conditions(rule, conditions)

    logger.info(f"Created rule {rule.pk} '{rule.name}' for company {company.realm_id}")
    return JsonResponse(rule.to_dict(), status=201)


@csrf_exempt
@api_login_required
@require_http_methods(["PUT", "DELETE"])
@handle_api_errors
def rule_detail(request, rule_id):
    """PUT: partial update. DELETE: deactivate (rules are never removed)."""
    rule = _get_owned_rule(request, rule_id)
    if rule is None:
        return JsonResponse({'error': 'Rule not found'}, status=404)

    if request.method == 'DELETE':
        rule.is_active = False
        rule.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Deactivated rule {rule.pk} '{rule.name}'")
        return JsonResponse({'success': True})

    data = json_body(request)

    if 'rule_name' in data:
        name = str(data.get('rule_name') or '').strip()
        if not name:
            raise ValidationError('rule_name cannot be empty', error_code='MISSING_NAME')
        rule.name = name
    if 'matchType' in data:
        rule.match_logic = _clean_match_logic(data['matchType'])
    if 'rule_type' in data:
        rule.rule_type = _clean_rule_type(data['rule_type'])
    if 'is_active' in data:
        rule.is_active = bool(data['is_active'])
    if 'actions' in data:
        actions = _clean_actions(data.get('actions'))
        if 'ledger' in actions:
            rule.suggested_ledger = actions.get('ledger') or ''
        if 'contactId' in actions:
            rule.suggested_contact_id = str(actions.get('contactId') or '')

    conditions = None
    if 'conditions' in data:
        conditions = _clean_conditions(data.get('conditions') or [])

    with db_transaction.atomic():
        rule.save()
        if conditions is not None:
            _replace_conditions(rule, conditions)

    rule = _get_owned_rule(request, rule_id)
    return JsonResponse(rule.to_dict())


@csrf_exempt
@api_login_required
@require_http_methods(["POST"])
@handle_api_errors
def apply_rules(request):
    """Classify an uploaded batch with the company's active rules"""
    data = json_body(request)
    transactions = data.get('transactions')
    if not isinstance(transactions, list) or not all(isinstance(row, dict) for row in transactions):
        raise ValidationError('transactions array required', error_code='MISSING_TRANSACTIONS')

    company = resolve_company(request.user, data.get('companyId'), require_active=False)

    if not get_rules_enabled():
        logger.info("Bank rules disabled, returning transactions unchanged")
        return JsonResponse({'transactions': transactions, 'applied': False})

    rules = BankRule.objects.for_classification(company.realm_id)
    logger.info(f"Applying rules for company {company.realm_id}")
    rows, applied = classify(transactions, rules)

    return JsonResponse({
        'transactions': [row.to_dict() for row in rows],
        'applied': applied,
    })
