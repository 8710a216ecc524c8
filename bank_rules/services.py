"""
Bank Rules Engine Service
--------------------------
Core matching logic for rule-based transaction suggestions.

Pure functions: rules are loaded by the caller, rows are returned annotated,
nothing is written anywhere.
"""

import logging

from bank_entries.rows import TransactionRow
from .models import BankRule

logger = logging.getLogger(__name__)


def get_field_value(row, field):
    """
    Value of ``field`` in a row mapping, matched case-insensitively by key.

    A missing key (or a None value) reads as an empty string.
    """
    wanted = str(field or '').lower()
    for key, value in row.items():
        if str(key).lower() == wanted:
            return '' if value is None else str(value)
    return ''


def _to_float(value):
    try:
        return float(value)
    except (ValueError, TypeError):
        return None


def apply_operator(field_value, operator, condition_value):
    """
    Compare a row value against a condition value.

    Text operators are case-insensitive. Numeric operators compare floats and
    are False when either side does not parse. Unknown operators never match.
    """
    text = field_value.lower()
    target = str(condition_value or '').lower()

    if operator == 'contains':
        return target in text
    elif operator == 'not_contains':
        return target not in text
    elif operator == 'starts_with':
        return text.startswith(target)
    elif operator == 'ends_with':
        return text.endswith(target)
    elif operator == 'equals':
        return text == target

    if operator not in ('gt', 'lt', 'gte', 'lte', 'eq'):
        return False

    left = _to_float(text)
    right = _to_float(target)
    if left is None or right is None:
        return False

    if operator == 'gt':
        return left > right
    elif operator == 'lt':
        return left < right
    elif operator == 'gte':
        return left >= right
    elif operator == 'lte':
        return left <= right
    return left == right


def evaluate_condition(row, condition):
    """
    Check a single condition against a row mapping.

    Args:
        row: Mapping of column name to value (keys in any casing)
        condition: Anything with ``field``, ``operator`` and ``value``
            (a BankRuleCondition, or a dict with those keys)

    Returns:
        bool: True if the condition holds
    """
    if isinstance(condition, dict):
        field = condition.get('field')
        operator = condition.get('operator')
        value = condition.get('value')
    else:
        field, operator, value = condition.field, condition.operator, condition.value

    return apply_operator(get_field_value(row, field), operator, value)


def rule_matches(row, rule):
    """
    Check if a row matches all (ALL) or any (ANY) of a rule's conditions.

    A rule without conditions never matches.
    """
    conditions = list(rule.conditions.all())
    if not conditions:
        return False

    try:
        match_logic = BankRule.normalize_match_logic(rule.match_logic)
    except ValueError:
        logger.warning(f"Rule {rule.pk} has unknown match logic {rule.match_logic!r}, skipping")
        return False

    results = (evaluate_condition(row, condition) for condition in conditions)
    if match_logic == BankRule.MATCH_ALL:
        return all(results)
    return any(results)


def classify(rows, rules):
    """
    Annotate rows with the suggestion of the first matching rule.

    Args:
        rows: Iterable of TransactionRow
        rules: Rules in evaluation order, usually
            ``BankRule.objects.for_classification(company_id)``

    Returns:
        tuple: (list of TransactionRow, applied) where ``applied`` is True if
        at least one row was annotated. Rows marked "Manual" and rows no rule
        matches come back unchanged.
    """
    rules = list(rules)
    classified = []
    applied = False

    for row in rows:
        if not isinstance(row, TransactionRow):
            row = TransactionRow.from_dict(row)

        if row.is_manual:
            classified.append(row)
            continue

        mapping = row.to_dict()
        for rule in rules:
            if rule_matches(mapping, rule):
                row = row.with_suggestion(
                    rule.name,
                    rule.suggested_ledger,
                    rule.rule_type,
                    rule.suggested_contact_id,
                )
                applied = True
                break

        classified.append(row)

    logger.info(f"Classified {len(classified)} rows against {len(rules)} rules, applied={applied}")
    return classified, applied
