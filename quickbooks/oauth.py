"""
Intuit OAuth 2.0 client.

Covers the three token operations the integration needs: building the
consent URL, exchanging an authorization code and refreshing tokens.
"""

import logging

import httpx

from .exceptions import AuthenticationError, RemoteFault, TransientNetworkError
from .gateway import extract_json, is_transient_error

logger = logging.getLogger(__name__)


class IntuitOAuthClient:
    """OAuth client for the QuickBooks Online accounting scope"""

    AUTHORIZE_URL = 'https://appcenter.intuit.com/connect/oauth2'
    TOKEN_URL = 'https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer'
    SCOPES = ('com.intuit.quickbooks.accounting', 'openid')

    def __init__(self, client_id, client_secret, redirect_uri,
                 environment='sandbox', http_client=None, timeout=30.0):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.environment = environment
        self._owns_client = http_client is None
        self.http = http_client or httpx.Client(timeout=timeout)

        logger.info(f"[QBO OAuth] Initialised in {environment.upper()} mode, redirect {redirect_uri}")

    def close(self):
        if self._owns_client:
            self.http.close()

    def authorize_uri(self, state):
        """URL of the Intuit consent page for this application"""
        params = {
            'client_id': self.client_id,
            'response_type': 'code',
            'scope': ' '.join(self.SCOPES),
            'redirect_uri': self.redirect_uri,
            'state': state,
        }
        return str(httpx.URL(self.AUTHORIZE_URL, params=params))

    def exchange_code(self, code):
        """Trade an authorization code for a token pair"""
        return self._token_request({
            'grant_type': 'authorization_code',
            'code': code,
            'redirect_uri': self.redirect_uri,
        })

    def refresh(self, refresh_token):
        """Trade a refresh token for a new token pair"""
        return self._token_request({
            'grant_type': 'refresh_token',
            'refresh_token': refresh_token,
        })

    def _token_request(self, data):
        grant = data['grant_type']
        try:
            response = self.http.post(
                self.TOKEN_URL,
                data=data,
                auth=(self.client_id, self.client_secret),
                headers={'Accept': 'application/json'},
            )
        except httpx.TransportError as exc:
            logger.error(f"[QBO OAuth] {grant} request failed: {exc}")
            if is_transient_error(exc):
                raise TransientNetworkError(
                    'Intuit OAuth endpoint unreachable',
                    error_code='OAUTH_NETWORK',
                    context={'grant_type': grant},
                ) from exc
            raise AuthenticationError(
                f"Token request failed: {exc}",
                error_code='OAUTH_FAILED',
                context={'grant_type': grant},
            ) from exc
        except httpx.RequestError as exc:
            logger.error(f"[QBO OAuth] {grant} response unreadable: {exc}")
            raise AuthenticationError(
                f"Token request failed: {exc}",
                error_code='OAUTH_FAILED',
                context={'grant_type': grant},
            ) from exc

        if response.status_code >= 400:
            try:
                body = extract_json(response)
            except RemoteFault:
                body = {}
            reason = body.get('error', '') if isinstance(body, dict) else ''
            logger.error(f"[QBO OAuth] {grant} rejected with HTTP {response.status_code} {reason}")
            raise AuthenticationError(
                f"Token request rejected: {reason or response.status_code}",
                error_code=reason or 'OAUTH_REJECTED',
                context={'grant_type': grant, 'status': response.status_code},
            )

        tokens = extract_json(response)
        if not isinstance(tokens, dict) or not tokens.get('access_token'):
            raise AuthenticationError(
                'Token response did not contain an access token',
                error_code='OAUTH_INVALID_RESPONSE',
                context={'grant_type': grant},
            )
        return tokens
