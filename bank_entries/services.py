"""
Transaction Posting Service
---------------------------
Turns classified bank rows into QuickBooks Purchase / Deposit / Transfer
entities, one remote call per row.

Design Principle: A row failing never stops the batch
- The offset bank account is resolved once; failure aborts the request
- Every row after that succeeds or fails on its own
- Nothing already posted is undone (no cancellation of remote entries)
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from quickbooks.exceptions import (
    OffsetAccountError,
    QuickBooksError,
    UnsupportedKindError,
    ValidationError,
)
from .rows import EXPENSE, INCOME, TRANSFER, TransactionRow, parse_transaction_date

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = 'Bank Upload'

# Remote entity created for each supported transaction kind
ENTITY_FOR_KIND = {
    EXPENSE: 'Purchase',
    INCOME: 'Deposit',
    TRANSFER: 'Transfer',
}


@dataclass
class RowOutcome:
    """Result of posting a single row"""
    index: int
    success: bool
    row: TransactionRow
    entity_type: Optional[str] = None
    remote_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self):
        if self.success:
            return {
                'index': self.index,
                'id': self.remote_id,
                'status': 'success',
                'type': self.entity_type,
            }
        return {
            'index': self.index,
            'status': 'error',
            'type': self.entity_type,
            'error': self.error,
        }


@dataclass
class PostingResult:
    """Aggregate of a posting batch. Partial success is a normal outcome."""
    outcomes: List[RowOutcome] = field(default_factory=list)
    cancelled: bool = False

    @property
    def success_count(self):
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def error_count(self):
        return sum(1 for outcome in self.outcomes if not outcome.success)

    @property
    def failures(self):
        return [outcome for outcome in self.outcomes if not outcome.success]

    def to_dict(self):
        data = {
            'message': 'Processing cancelled' if self.cancelled else 'Processing complete',
            'successCount': self.success_count,
            'errorCount': self.error_count,
            'errors': [
                {'txn': outcome.row.to_dict(), 'error': outcome.error}
                for outcome in self.failures
            ],
            'results': [outcome.to_dict() for outcome in self.outcomes],
        }
        if self.cancelled:
            data['cancelled'] = True
        return data


class TransactionPostingService:
    """
    Posts a batch of rows for one QuickBooks company.

    Main Entry Point:
        post(realm_id, rows, bank_account_id=None, cancel_event=None)
    """

    def __init__(self, gateway):
        self.gateway = gateway
        self._chart = None

    # --- Offset account ---

    def resolve_offset_account(self, realm_id, bank_account_id=None):
        """
        Bank account used as the counter-leg of every posting.

        Raises:
            OffsetAccountError: requested account not found, or no bank account at all
        """
        accounts = self.gateway.get_bank_accounts(realm_id)

        if bank_account_id:
            for account in accounts:
                if str(account.get('Id')) == str(bank_account_id):
                    return account
            raise OffsetAccountError(
                'Selected Bank Account not found in QuickBooks.',
                error_code='OFFSET_ACCOUNT_NOT_FOUND',
                context={'bank_account_id': bank_account_id},
            )

        if not accounts:
            raise OffsetAccountError(
                'No Bank Account found in QuickBooks to use as default offset.',
                error_code='NO_OFFSET_ACCOUNT',
            )
        return accounts[0]

    # --- Suggestions ---

    def _chart_of_accounts(self, realm_id):
        if self._chart is None:
            self._chart = self.gateway.get_chart_of_accounts(realm_id)
        return self._chart

    def _account_id_for_name(self, realm_id, name):
        wanted = name.strip().lower()
        for account in self._chart_of_accounts(realm_id):
            names = (account.get('Name'), account.get('FullyQualifiedName'))
            if any(candidate and candidate.strip().lower() == wanted for candidate in names):
                return str(account.get('Id'))
        return ''

    def apply_suggestions(self, realm_id, row):
        """
        Fill empty mapping fields from the row's rule suggestion.

        The user's own choices always win over suggested values.
        """
        kind = row.transaction_type or row.suggested_type
        account_id = row.qbo_account_id
        if not account_id and row.suggested_ledger:
            account_id = self._account_id_for_name(realm_id, row.suggested_ledger)
            if not account_id:
                logger.warning(f"Suggested ledger '{row.suggested_ledger}' not found in chart of accounts")

        vendor_id = row.qbo_vendor_id
        customer_id = row.qbo_customer_id
        if row.suggested_contact_id:
            resolved_kind = kind or row.resolved_kind()
            if resolved_kind == INCOME:
                customer_id = customer_id or row.suggested_contact_id
            else:
                vendor_id = vendor_id or row.suggested_contact_id

        return TransactionRow(
            date=row.date,
            description=row.description,
            amount=row.amount,
            transaction_type=kind,
            rule_applied=row.rule_applied,
            qbo_account_id=account_id,
            qbo_vendor_id=vendor_id,
            qbo_customer_id=customer_id,
            suggested_ledger=row.suggested_ledger,
            suggested_type=row.suggested_type,
            suggested_contact_id=row.suggested_contact_id,
            source_amount=row.source_amount,
            extra=row.extra,
        )

    # --- Payloads ---

    def build_payload(self, row, offset_account):
        """
        (entity name, payload) for one row.

        Raises:
            ValidationError: amount or target account missing
            UnsupportedKindError: kind has no posting mapping
        """
        description = row.description or DEFAULT_DESCRIPTION

        if row.amount is None:
            raise ValidationError(
                f"Missing or invalid amount for transaction: {description}",
                error_code='INVALID_AMOUNT',
            )
        if not row.qbo_account_id:
            raise ValidationError(
                f"Missing Target Account for transaction: {description}",
                error_code='MISSING_TARGET_ACCOUNT',
            )

        kind = row.resolved_kind()
        if kind not in ENTITY_FOR_KIND:
            raise UnsupportedKindError(
                f"Unsupported Transaction Type: {kind}",
                error_code='UNSUPPORTED_KIND',
            )

        amount = float(abs(row.amount))
        if not math.isfinite(amount):
            raise ValidationError(
                f"Amount out of range for transaction: {description}",
                error_code='INVALID_AMOUNT',
            )

        txn_date = parse_transaction_date(row.date).isoformat()
        offset_ref = {'value': str(offset_account.get('Id')), 'name': offset_account.get('Name', '')}
        target_ref = {'value': str(row.qbo_account_id)}

        if kind == EXPENSE:
            payload = {
                'TxnDate': txn_date,
                'PaymentType': 'Cash',
                'AccountRef': offset_ref,
                'Line': [{
                    'DetailType': 'AccountBasedExpenseLineDetail',
                    'Amount': amount,
                    'Description': description,
                    'AccountBasedExpenseLineDetail': {'AccountRef': target_ref},
                }],
            }
            if row.qbo_vendor_id:
                payload['EntityRef'] = {'value': str(row.qbo_vendor_id), 'type': 'Vendor'}

        elif kind == INCOME:
            line_detail = {'AccountRef': target_ref}
            if row.qbo_customer_id:
                line_detail['Entity'] = {'value': str(row.qbo_customer_id), 'type': 'Customer'}
            payload = {
                'TxnDate': txn_date,
                'DepositToAccountRef': offset_ref,
                'Line': [{
                    'DetailType': 'DepositLineDetail',
                    'Amount': amount,
                    'Description': description,
                    'DepositLineDetail': line_detail,
                }],
            }

        else:
            # Money in: target -> bank. Money out: bank -> target.
            if row.amount > 0:
                from_ref, to_ref = target_ref, {'value': offset_ref['value']}
            else:
                from_ref, to_ref = offset_ref, target_ref
            payload = {
                'TxnDate': txn_date,
                'FromAccountRef': from_ref,
                'ToAccountRef': to_ref,
                'Amount': amount,
                'PrivateNote': description,
            }

        return ENTITY_FOR_KIND[kind], payload

    # --- Batch ---

    def post(self, realm_id, rows, bank_account_id=None, cancel_event=None):
        """
        Post every row and report what happened to each.

        Args:
            realm_id: QuickBooks company id
            rows: Iterable of TransactionRow (dicts are normalised)
            bank_account_id: Offset bank account id; defaults to the first bank account
            cancel_event: Optional threading.Event; once set, no further rows are submitted

        Returns:
            PostingResult

        Raises:
            OffsetAccountError, AuthenticationError: the batch cannot start
        """
        rows = [row if isinstance(row, TransactionRow) else TransactionRow.from_dict(row) for row in rows]
        offset_account = self.resolve_offset_account(realm_id, bank_account_id)
        logger.info(
            f"Posting {len(rows)} transactions to company {realm_id} "
            f"against bank account {offset_account.get('Id')}"
        )

        result = PostingResult()
        for index, row in enumerate(rows):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Posting cancelled after {index} of {len(rows)} rows")
                result.cancelled = True
                break
            result.outcomes.append(self.post_row(realm_id, index, row, offset_account))

        logger.info(
            f"Posting complete for company {realm_id}: "
            f"{result.success_count} succeeded, {result.error_count} failed"
        )
        return result

    def post_row(self, realm_id, index, row, offset_account):
        entity_type = None
        try:
            row = self.apply_suggestions(realm_id, row)
            entity_type, payload = self.build_payload(row, offset_account)
            response = self.gateway.create_entity(realm_id, entity_type, payload)
        except QuickBooksError as exc:
            logger.error(f"Row {index + 1} failed: {exc.message}")
            return RowOutcome(index=index, success=False, row=row, entity_type=entity_type, error=exc.message)
        except Exception as exc:
            # Rows already submitted must still be reported
            logger.exception(f"Row {index + 1} failed unexpectedly")
            return RowOutcome(
                index=index,
                success=False,
                row=row,
                entity_type=entity_type,
                error=f"Unexpected error: {exc}",
            )

        return RowOutcome(
            index=index,
            success=True,
            row=row,
            entity_type=entity_type,
            remote_id=self._remote_id(response, entity_type),
        )

    @staticmethod
    def _remote_id(response, entity_type):
        if not isinstance(response, dict):
            return None
        entity = response.get(entity_type)
        if isinstance(entity, dict) and entity.get('Id'):
            return str(entity['Id'])
        remote_id = response.get('Id')
        return str(remote_id) if remote_id else None
