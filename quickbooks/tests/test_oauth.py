"""
Test Intuit OAuth client against httpx.MockTransport
"""

import httpx
from django.test import SimpleTestCase

from ..exceptions import AuthenticationError, TransientNetworkError
from ..oauth import IntuitOAuthClient


class IntuitOAuthClientTest(SimpleTestCase):

    def setUp(self):
        self.requests = []
        self.responder = lambda request: httpx.Response(200, json={
            'access_token': 'access',
            'refresh_token': 'refresh',
            'expires_in': 3600,
            'x_refresh_token_expires_in': 8726400,
        })

        def handler(request):
            self.requests.append(request)
            return self.responder(request)

        http = httpx.Client(transport=httpx.MockTransport(handler))
        self.addCleanup(http.close)
        self.oauth = IntuitOAuthClient('client', 'secret', 'http://localhost:8000/api/auth/callback', http_client=http)

    def test_authorize_uri(self):
        uri = httpx.URL(self.oauth.authorize_uri('state-1'))

        self.assertEqual(uri.host, 'appcenter.intuit.com')
        self.assertEqual(uri.params['state'], 'state-1')
        self.assertEqual(uri.params['scope'], 'com.intuit.quickbooks.accounting openid')

    def test_refresh_returns_tokens(self):
        tokens = self.oauth.refresh('old-refresh')

        self.assertEqual(tokens['access_token'], 'access')
        self.assertIn(b'grant_type=refresh_token', self.requests[0].content)
        self.assertTrue(self.requests[0].headers['Authorization'].startswith('Basic '))

    def test_rejected_grant(self):
        self.responder = lambda request: httpx.Response(400, json={'error': 'invalid_grant'})

        with self.assertRaises(AuthenticationError) as ctx:
            self.oauth.refresh('dead-refresh')
        self.assertEqual(ctx.exception.error_code, 'invalid_grant')

    def test_unreadable_response(self):
        self.responder = lambda request: httpx.Response(
            200, headers={'Content-Encoding': 'gzip'}, content=b'not gzip'
        )

        with self.assertRaises(AuthenticationError) as ctx:
            self.oauth.exchange_code('code')
        self.assertEqual(ctx.exception.error_code, 'OAUTH_FAILED')

    def test_network_failure(self):
        def reset(request):
            raise httpx.ConnectError('Connection reset by peer', request=request)

        self.responder = reset

        with self.assertRaises(TransientNetworkError):
            self.oauth.exchange_code('code')
