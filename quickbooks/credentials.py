"""
Credential Manager
------------------
Token lifecycle for each connected QuickBooks realm.

States per realm:
    UNAUTHENTICATED  no active credential stored
    VALID            access token inside its lifetime
    EXPIRED          access token elapsed, refresh token still usable
    UNRECOVERABLE    refresh token elapsed too (or the refresh call failed)

Refreshes are serialised per realm: an in-process lock keeps threads of this
worker from racing, and ``select_for_update`` keeps separate workers apart on
databases that support row locks. Intuit refresh tokens are single-use, so two
concurrent refreshes would leave one caller holding a dead token.
"""

import logging
import threading
from collections import defaultdict
from datetime import timedelta
from enum import Enum

from django.db import transaction
from django.utils import timezone

from .exceptions import (
    AuthenticationError,
    QuickBooksError,
    RealmOwnershipError,
    TransientNetworkError,
)
from .models import QBOCredential

logger = logging.getLogger(__name__)

DUPLICATE_CALLBACK_WINDOW = timedelta(seconds=30)


class CredentialState(Enum):
    UNAUTHENTICATED = 'unauthenticated'
    VALID = 'valid'
    EXPIRED = 'expired'
    UNRECOVERABLE = 'unrecoverable'


class RefreshLocks:
    """One lock per realm id, created on first use"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = defaultdict(threading.Lock)

    def for_realm(self, realm_id):
        with self._guard:
            return self._locks[realm_id]


refresh_locks = RefreshLocks()


class CredentialManager:
    """
    Loads, validates, refreshes and persists QuickBooks credentials.

    Args:
        oauth_client: IntuitOAuthClient (or a stand-in with ``exchange_code``
            and ``refresh``)
        clock: callable returning the current aware datetime
        locks: RefreshLocks registry shared by every manager in the process
    """

    def __init__(self, oauth_client, clock=timezone.now, locks=None):
        self.oauth = oauth_client
        self.clock = clock
        self.locks = locks or refresh_locks

    # --- Reading ---

    def load(self, realm_id):
        """Active credential for the realm, or None"""
        if not realm_id:
            return None
        return QBOCredential.objects.filter(realm_id=realm_id, is_active=True).first()

    def state_of(self, credential, now=None):
        if credential is None or not credential.is_active:
            return CredentialState.UNAUTHENTICATED
        if credential.needs_reconnect:
            return CredentialState.UNRECOVERABLE
        now = now or self.clock()
        if credential.is_access_token_valid(now):
            return CredentialState.VALID
        if credential.is_refresh_token_valid(now):
            return CredentialState.EXPIRED
        return CredentialState.UNRECOVERABLE

    def is_connected(self, realm_id):
        credential = self.load(realm_id)
        return credential is not None and bool(credential.access_token)

    def list_companies(self, user, include_inactive=False):
        queryset = QBOCredential.objects.filter(user=user)
        if not include_inactive:
            queryset = queryset.filter(is_active=True)
        return list(queryset.order_by('company_name', 'realm_id'))

    # --- Validation / refresh ---

    def get_valid_credential(self, realm_id):
        """
        Return a credential whose access token is usable right now.

        Raises:
            AuthenticationError: nothing stored, refresh token elapsed, or the
                refresh call failed
        """
        credential = self.load(realm_id)
        state = self.state_of(credential)

        if state is CredentialState.VALID:
            return credential
        if state is CredentialState.EXPIRED:
            return self._refresh(realm_id)
        self._raise_for_state(state, realm_id)

    def _raise_for_state(self, state, realm_id):
        if state is CredentialState.UNAUTHENTICATED:
            raise AuthenticationError(
                'Not authenticated',
                error_code='NOT_CONNECTED',
                context={'realm_id': realm_id},
            )
        raise AuthenticationError(
            'QuickBooks authorization has expired, reconnect the company',
            error_code='REFRESH_EXPIRED',
            context={'realm_id': realm_id},
        )

    def _refresh(self, realm_id):
        with self.locks.for_realm(realm_id):
            with transaction.atomic():
                credential = (
                    QBOCredential.objects.select_for_update()
                    .filter(realm_id=realm_id, is_active=True)
                    .first()
                )
                state = self.state_of(credential)

                # Another caller may have refreshed while we waited
                if state is CredentialState.VALID:
                    return credential
                if state is not CredentialState.EXPIRED:
                    self._raise_for_state(state, realm_id)

                logger.info(f"[QBO] Refreshing access token for realm {realm_id}")
                try:
                    tokens = self.oauth.refresh(credential.refresh_token)
                except QuickBooksError as exc:
                    logger.error(f"[QBO] Token refresh failed for realm {realm_id}: {exc}")
                    failure = exc
                    # Unreachable endpoint: the refresh token was not consumed
                    if not isinstance(exc, TransientNetworkError):
                        credential.needs_reconnect = True
                        credential.save(update_fields=['needs_reconnect'])
                else:
                    self._apply_tokens(credential, tokens)
                    credential.save()
                    return credential

            # Raised outside the atomic block so needs_reconnect is committed
            raise AuthenticationError(
                'Token refresh failed, reconnect the company',
                error_code='REFRESH_FAILED',
                context={'realm_id': realm_id, 'cause': failure.error_code},
            ) from failure

    # --- Writing ---

    def _apply_tokens(self, credential, tokens):
        credential.access_token = tokens['access_token']
        credential.refresh_token = tokens.get('refresh_token') or credential.refresh_token
        credential.expires_in = int(tokens.get('expires_in') or credential.expires_in)
        credential.x_refresh_token_expires_in = int(
            tokens.get('x_refresh_token_expires_in') or credential.x_refresh_token_expires_in
        )
        credential.created_at = self.clock()
        credential.is_active = True
        credential.needs_reconnect = False

    def check_owner(self, credential, user):
        """
        Raises:
            RealmOwnershipError: the realm is actively connected by someone else
        """
        if credential is None or credential.user_id == user.pk:
            return
        if credential.is_active:
            logger.warning(
                f"[QBO] User {user.pk} tried to connect realm {credential.realm_id} "
                f"owned by user {credential.user_id}"
            )
            raise RealmOwnershipError(
                'This QuickBooks company is connected by another user',
                error_code='REALM_OWNED',
                context={'realm_id': credential.realm_id},
            )
        logger.info(
            f"[QBO] Realm {credential.realm_id} moves from user {credential.user_id} "
            f"to user {user.pk} after disconnect"
        )

    def persist(self, tokens, realm_id, user, company_name=None):
        """
        Upsert the token pair for a realm and mark it active.

        A disconnected realm may be taken over by another user; an active one
        may not.
        """
        with transaction.atomic():
            credential = (
                QBOCredential.objects.select_for_update()
                .filter(realm_id=realm_id)
                .first()
            )
            self.check_owner(credential, user)
            if credential is None:
                credential = QBOCredential(realm_id=realm_id)
            credential.user = user
            if company_name:
                credential.company_name = company_name
            self._apply_tokens(credential, tokens)
            credential.save()

        logger.info(f"[QBO] Tokens saved for realm {realm_id}, user {user.pk}")
        return credential

    def revoke(self, realm_id):
        """Soft-disconnect: the row stays for history, only is_active clears"""
        updated = QBOCredential.objects.filter(realm_id=realm_id).update(is_active=False)
        if updated:
            logger.info(f"[QBO] Credential deactivated for realm {realm_id}")
        return bool(updated)

    # --- Authorization flow ---

    def was_recently_connected(self, realm_id, user, window=DUPLICATE_CALLBACK_WINDOW):
        """True if ``user`` (re)connected this realm inside ``window``"""
        credential = self.load(realm_id)
        return (
            credential is not None
            and credential.user_id == user.pk
            and credential.age(self.clock()) < window
        )

    def authorize(self, code, realm_id, user, gateway):
        """
        Complete the authorization-code flow and store the credential.

        The company name lookup is best effort: if it fails the placeholder
        ``Company <realm_id>`` is stored and the connection still succeeds.

        Raises:
            RealmOwnershipError: before any code exchange, if another user
                holds an active connection to the realm
        """
        self.check_owner(QBOCredential.objects.filter(realm_id=realm_id).first(), user)
        tokens = self.oauth.exchange_code(code)
        logger.info(f"[QBO] Token created for realm {realm_id}")
        credential = self.persist(tokens, realm_id, user)

        credential.company_name = self.lookup_company_name(realm_id, gateway)
        credential.save(update_fields=['company_name'])
        return credential

    def lookup_company_name(self, realm_id, gateway):
        try:
            info = gateway.get_company_info(realm_id)
        except QuickBooksError as exc:
            logger.warning(f"[QBO] Company name lookup failed for realm {realm_id}: {exc}")
            info = None
        name = (info or {}).get('CompanyName') or (info or {}).get('LegalName')
        return name or f"Company {realm_id}"
