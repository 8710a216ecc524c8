"""
Transaction rows as they travel between upload, classification and posting.

Uploaded rows arrive as loosely-keyed dicts (``Date`` or ``date``, ``Amount``
or ``amount``). They are normalised once here; the rest of the code works with
``TransactionRow`` attributes only.
"""

import logging
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from dateutil.parser import isoparse
from django.utils import timezone

logger = logging.getLogger(__name__)

EXPENSE = 'Expense'
INCOME = 'Income'
TRANSFER = 'Transfer'

MANUAL = 'Manual'


def parse_amount(value) -> Optional[Decimal]:
    """Signed Decimal from a number or text like '-1,250.00'; None if unparseable"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    text = str(value).strip().replace(',', '')
    if not text:
        return None
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def parse_transaction_date(value, today: Optional[date] = None) -> date:
    """
    Date of a bank row; never raises.

    Accepts date/datetime objects, ISO strings ('2024-03-15',
    '2024-03-15T10:00:00Z') and day-first slash dates ('15/03/2024').
    Anything else falls back to today with a warning.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip() if value is not None else ''
    if text:
        try:
            return isoparse(text).date()
        except (ValueError, OverflowError):
            pass

        parts = text.split('/')
        if len(parts) == 3:
            try:
                day, month, year = (int(part) for part in parts)
                if year > 1000:
                    return date(year, month, day)
            except ValueError:
                pass

    fallback = today or timezone.localdate()
    logger.warning(f"Could not parse date: {value!r}, defaulting to {fallback.isoformat()}")
    return fallback


@dataclass
class TransactionRow:
    """One bank-statement line plus its classification and mapping fields"""

    date: Any = None
    description: str = ''
    amount: Optional[Decimal] = None
    transaction_type: str = ''
    rule_applied: str = ''
    qbo_account_id: str = ''
    qbo_vendor_id: str = ''
    qbo_customer_id: str = ''
    suggested_ledger: str = ''
    suggested_type: str = ''
    suggested_contact_id: str = ''
    # Amount exactly as uploaded, echoed back so classification never rewrites it
    source_amount: Any = None
    # Columns this module does not know about, passed through untouched
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def field_names(cls):
        return [f.name for f in fields(cls) if f.name not in ('source_amount', 'extra')]

    @classmethod
    def from_dict(cls, data):
        known = {name.lower(): name for name in cls.field_names()}
        values = {}
        extra = {}

        for key, value in data.items():
            name = known.get(str(key).lower())
            if name is None:
                extra[key] = value
            elif not values.get(name) and value is not None:
                values[name] = value

        source_amount = values.pop('amount', None)
        text_values = {
            name: ('' if value is None else str(value))
            for name, value in values.items()
            if name != 'date'
        }
        return cls(
            date=values.get('date'),
            amount=parse_amount(source_amount),
            source_amount=source_amount,
            extra=extra,
            **text_values,
        )

    def to_dict(self):
        data = dict(self.extra)
        for name in self.field_names():
            data[name] = getattr(self, name)
        data['amount'] = self.source_amount if self.source_amount is not None else self.amount
        return data

    @property
    def is_manual(self):
        return self.rule_applied == MANUAL

    def resolved_kind(self):
        """Explicit kind, else Income for money in and Expense for money out"""
        if self.transaction_type:
            return self.transaction_type
        return INCOME if self.amount is not None and self.amount > 0 else EXPENSE

    def with_suggestion(self, rule_name, ledger, kind, contact_id):
        return replace(
            self,
            rule_applied=rule_name,
            suggested_ledger=ledger or '',
            suggested_type=kind or '',
            suggested_contact_id=contact_id or '',
        )
