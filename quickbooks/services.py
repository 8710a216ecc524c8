"""
Wiring for the QuickBooks collaborators.

Views never reach for module-level clients: each request builds its own
OAuth client, credential manager and gateway from settings.
"""

from contextlib import contextmanager

from django.conf import settings

from .credentials import CredentialManager
from .exceptions import AuthenticationError
from .gateway import QuickBooksGateway
from .models import QBOCredential
from .oauth import IntuitOAuthClient


def build_oauth_client():
    return IntuitOAuthClient(
        client_id=settings.QBO_CLIENT_ID,
        client_secret=settings.QBO_CLIENT_SECRET,
        redirect_uri=settings.QBO_REDIRECT_URI,
        environment=settings.QBO_ENVIRONMENT,
        timeout=settings.QBO_HTTP_TIMEOUT,
    )


@contextmanager
def quickbooks_session():
    """
    Yield a gateway wired to a fresh credential manager.

    ``gateway.credentials`` is the manager, for views that need both.
    """
    oauth_client = build_oauth_client()
    gateway = QuickBooksGateway(
        CredentialManager(oauth_client),
        environment=settings.QBO_ENVIRONMENT,
        minor_version=settings.QBO_MINOR_VERSION,
        timeout=settings.QBO_HTTP_TIMEOUT,
    )
    try:
        yield gateway
    finally:
        gateway.close()
        oauth_client.close()


def resolve_company(user, company_id=None, require_active=True):
    """
    Credential record the user may act on.

    With no ``company_id`` the user's most recently connected company is used.

    Raises:
        AuthenticationError: the user has no such (active) connection
    """
    queryset = QBOCredential.objects.filter(user=user)
    if require_active:
        queryset = queryset.filter(is_active=True)

    if company_id:
        credential = queryset.filter(realm_id=str(company_id)).first()
    else:
        credential = queryset.order_by('-created_at').first()

    if credential is None:
        raise AuthenticationError(
            'Not authenticated',
            error_code='NOT_CONNECTED',
            context={'company_id': company_id},
        )
    return credential
