"""
Bank Rules Models
-----------------
User-defined rules that classify uploaded bank transactions.

Design Principle: Suggest, never overwrite
- Rules only fill suggestion fields on a row
- Rows a user mapped by hand ("Manual") are left alone
- Per-company isolation (company = connected QuickBooks realm)
- Rules are deactivated, never deleted, so past provenance stays readable
"""

from django.db import models
from django.contrib.auth.models import User
from quickbooks.models import QBOCredential


class BankRuleQuerySet(models.QuerySet):

    def for_company(self, company_id):
        return self.filter(company_id=company_id)

    def for_classification(self, company_id):
        """
        Active rules of a company in evaluation order.

        Most recently created first: when several rules match a row, the
        newest one wins.
        """
        return (
            self.for_company(company_id)
            .filter(is_active=True)
            .prefetch_related('conditions')
            .order_by('-created_at', '-id')
        )


class BankRule(models.Model):
    """
    Classification rule - matches transactions and suggests a ledger mapping.

    Example Use Cases:
    - "Description contains 'UBER' → Travel expense"
    - "Description contains 'SALARY' AND Amount gt 0 → Salary income"
    - "Description starts with 'TFR' → Transfer to savings"
    """

    MATCH_ALL = 'ALL'
    MATCH_ANY = 'ANY'

    # Legacy spellings still sent by older clients
    MATCH_ALIASES = {
        'AND': MATCH_ALL,
        'OR': MATCH_ANY,
    }

    RULE_TYPE_CHOICES = [
        ('Expense', 'Expense'),
        ('Income', 'Income'),
        ('Transfer', 'Transfer'),
        ('Journal Entry', 'Journal Entry'),
        ('Bill', 'Bill'),
        ('Invoice', 'Invoice'),
    ]

    # Ownership
    company = models.ForeignKey(
        QBOCredential,
        on_delete=models.CASCADE,
        related_name='bank_rules',
        help_text="QuickBooks company that owns this rule"
    )

    # Rule Identity
    name = models.CharField(
        max_length=200,
        help_text="E.g., 'Uber rides', 'Salary Deposits'"
    )

    # Matching Logic
    match_logic = models.CharField(
        max_length=10,
        choices=[
            (MATCH_ALL, 'All Conditions Must Match (AND)'),
            (MATCH_ANY, 'Any Condition Can Match (OR)')
        ],
        default=MATCH_ALL,
        help_text="How to combine multiple conditions"
    )

    rule_type = models.CharField(
        max_length=50,
        choices=RULE_TYPE_CHOICES,
        default='Expense',
        help_text="Transaction kind suggested for matching rows"
    )

    # Actions (What to suggest when rule matches)
    suggested_ledger = models.CharField(
        max_length=200,
        blank=True,
        help_text="Name of the QuickBooks account to suggest"
    )

    suggested_contact_id = models.CharField(
        max_length=64,
        blank=True,
        help_text="QuickBooks vendor/customer id to suggest"
    )

    # Settings
    is_active = models.BooleanField(
        default=True,
        help_text="Disable rule without deleting it"
    )

    # Audit
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_bank_rules'
    )

    objects = BankRuleQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at', '-id']
        verbose_name = "Bank Rule"
        verbose_name_plural = "Bank Rules"
        indexes = [
            models.Index(fields=['company', 'is_active'], name='bank_rule_company_active_idx'),
        ]

    def __str__(self):
        status = "active" if self.is_active else "inactive"
        return f"{self.name} ({self.company_id}, {status})"

    @classmethod
    def normalize_match_logic(cls, value):
        """Map ALL/ANY and the legacy AND/OR onto the stored values"""
        value = str(value or cls.MATCH_ALL).upper()
        value = cls.MATCH_ALIASES.get(value, value)
        if value not in (cls.MATCH_ALL, cls.MATCH_ANY):
            raise ValueError(f"Unknown match type: {value}")
        return value

    def to_dict(self):
        return {
            'id': self.id,
            'client_id': self.company_id,
            'rule_name': self.name,
            'matchType': self.match_logic,
            'conditions': [condition.to_dict() for condition in self.conditions.all()],
            'rule_type': self.rule_type,
            'actions': {
                'ledger': self.suggested_ledger,
                'contactId': self.suggested_contact_id or None,
            },
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class BankRuleCondition(models.Model):
    """
    Individual condition within a rule (Field + Operator + Value)

    Structure: [Field] [Operator] [Value]
    Example: [Description] [contains] [RENT]
    Example: [Amount] [gt] [1000]
    """

    rule = models.ForeignKey(
        BankRule,
        on_delete=models.CASCADE,
        related_name='conditions'
    )

    # Column A: Field to check (matched case-insensitively against row keys)
    FIELD_CHOICES = [
        ('Description', 'Transaction Description'),
        ('Amount', 'Amount'),
    ]

    field = models.CharField(
        max_length=50,
        help_text="Which transaction field to check, e.g. Description or Amount"
    )

    # Column B: Comparison operator
    STRING_OPERATORS = ('contains', 'not_contains', 'starts_with', 'ends_with', 'equals')
    NUMERIC_OPERATORS = ('gt', 'lt', 'gte', 'lte', 'eq')

    OPERATOR_CHOICES = [
        # Text operators
        ('contains', 'Contains'),
        ('not_contains', 'Does Not Contain'),
        ('starts_with', 'Starts With'),
        ('ends_with', 'Ends With'),
        ('equals', 'Equals'),

        # Numeric operators
        ('gt', 'Greater Than (>)'),
        ('lt', 'Less Than (<)'),
        ('gte', 'Greater or Equal (≥)'),
        ('lte', 'Less or Equal (≤)'),
        ('eq', 'Equal (=)'),
    ]

    operator = models.CharField(
        max_length=20,
        choices=OPERATOR_CHOICES,
        help_text="How to compare the field value"
    )

    # Column C: Value to compare against
    value = models.CharField(
        max_length=500,
        blank=True,
        help_text="Comparison value; parsed as a number for numeric operators"
    )

    order = models.IntegerField(
        default=0,
        help_text="Position within the rule"
    )

    class Meta:
        ordering = ['order', 'id']
        verbose_name = "Rule Condition"
        verbose_name_plural = "Rule Conditions"

    def __str__(self):
        value_str = self.value[:50] if self.value else "(empty)"
        return f"{self.field} {self.operator} {value_str}"

    def to_dict(self):
        return {
            'field': self.field,
            'operator': self.operator,
            'value': self.value,
        }
