"""
Test QuickBooks API Views

OAuth connect flow, connection status, disconnect and the lookup endpoints.
The gateway is replaced with a fake; nothing talks to Intuit.
"""

import json
from contextlib import contextmanager
from datetime import timedelta
from unittest import mock

from django.contrib.auth.models import User
from django.test import TestCase, Client, override_settings
from django.urls import reverse
from django.utils import timezone

from ..credentials import CredentialManager
from ..exceptions import RemoteFault
from ..models import QBOCredential


class FakeGateway:
    """Stands in for QuickBooksGateway inside quickbooks_session()"""

    def __init__(self, credentials=None):
        self.credentials = credentials
        self.calls = []
        self.report_error = None

    def get_bank_accounts(self, realm_id):
        self.calls.append(('bank_accounts', realm_id))
        return [{'Id': '35', 'Name': 'Checking', 'AccountType': 'Bank'}]

    def get_chart_of_accounts(self, realm_id):
        self.calls.append(('chart', realm_id))
        return [{'Id': '35', 'Name': 'Checking'}, {'Id': '60', 'Name': 'Travel'}]

    def get_vendors(self, realm_id):
        return [{'Id': '7', 'DisplayName': 'Uber'}]

    def get_customers(self, realm_id):
        return [{'Id': '8', 'DisplayName': 'Acme Client'}]

    def get_company_info(self, realm_id):
        return {'CompanyName': 'Acme Ltd'}

    def get_report(self, realm_id, report_name, **params):
        self.calls.append(('report', report_name, params))
        if self.report_error:
            raise self.report_error
        return {'Header': {'ReportName': report_name}}


class FakeOAuthClient:
    def __init__(self):
        self.closed = False

    def authorize_uri(self, state):
        return f"https://appcenter.intuit.com/connect/oauth2?state={state}"

    def exchange_code(self, code):
        return {
            'access_token': 'access',
            'refresh_token': 'refresh',
            'expires_in': 3600,
            'x_refresh_token_expires_in': 8726400,
        }

    def close(self):
        self.closed = True


class QuickBooksViewTestCase(TestCase):

    def setUp(self):
        self.client = Client()
        self.user = User.objects.create_user(username='testuser', password='testpass123')
        self.client.login(username='testuser', password='testpass123')

        self.gateway = FakeGateway(CredentialManager(FakeOAuthClient()))

        @contextmanager
        def fake_session():
            yield self.gateway

        patcher = mock.patch('quickbooks.views.quickbooks_session', fake_session)
        patcher.start()
        self.addCleanup(patcher.stop)

    def connect(self, realm_id='9130', **kwargs):
        defaults = {
            'realm_id': realm_id,
            'user': self.user,
            'company_name': 'Acme Ltd',
            'access_token': 'access',
            'refresh_token': 'refresh',
        }
        defaults.update(kwargs)
        return QBOCredential.objects.create(**defaults)


class AuthFlowTest(QuickBooksViewTestCase):

    def test_requires_login(self):
        self.client.logout()
        response = self.client.get(reverse('quickbooks:status'))
        self.assertEqual(response.status_code, 401)

    def test_auth_start_redirects_with_state(self):
        with mock.patch('quickbooks.views.build_oauth_client', return_value=FakeOAuthClient()):
            response = self.client.get(reverse('quickbooks:auth_start'))

        self.assertEqual(response.status_code, 302)
        state = self.client.session['qbo_oauth_state']
        self.assertIn(f"state={state}", response['Location'])

    def set_state(self, state):
        session = self.client.session
        session['qbo_oauth_state'] = state
        session.save()

    def test_callback_persists_credential(self):
        self.set_state('expected')

        response = self.client.get(
            reverse('quickbooks:auth_callback'),
            {'code': 'abc', 'state': 'expected', 'realmId': '9130'},
        )

        self.assertEqual(response.status_code, 302)
        credential = QBOCredential.objects.get(realm_id='9130')
        self.assertEqual(credential.user, self.user)
        self.assertEqual(credential.company_name, 'Acme Ltd')
        self.assertTrue(credential.is_active)

    def test_callback_rejects_wrong_state(self):
        self.set_state('expected')

        response = self.client.get(
            reverse('quickbooks:auth_callback'),
            {'code': 'abc', 'state': 'forged', 'realmId': '9130'},
        )

        self.assertEqual(response.status_code, 400)
        self.assertFalse(QBOCredential.objects.exists())

    def test_callback_requires_code_and_realm(self):
        response = self.client.get(reverse('quickbooks:auth_callback'), {'state': 'x'})
        self.assertEqual(response.status_code, 400)

    def test_duplicate_callback_skips_exchange(self):
        self.connect(access_token='already-there')
        self.set_state('expected')

        response = self.client.get(
            reverse('quickbooks:auth_callback'),
            {'code': 'abc', 'state': 'expected', 'realmId': '9130'},
        )

        self.assertEqual(response.status_code, 302)
        self.assertEqual(QBOCredential.objects.get(realm_id='9130').access_token, 'already-there')

    def test_callback_for_realm_owned_by_other_user(self):
        other = User.objects.create_user(username='other', password='pw')
        self.connect(user=other, access_token='theirs')
        self.set_state('expected')

        response = self.client.get(
            reverse('quickbooks:auth_callback'),
            {'code': 'abc', 'state': 'expected', 'realmId': '9130'},
        )

        self.assertEqual(response.status_code, 403)
        self.assertEqual(json.loads(response.content)['code'], 'REALM_OWNED')
        stored = QBOCredential.objects.get(realm_id='9130')
        self.assertEqual(stored.user, other)
        self.assertEqual(stored.access_token, 'theirs')


class StatusTest(QuickBooksViewTestCase):

    def test_not_connected(self):
        response = self.client.get(reverse('quickbooks:status'))

        data = json.loads(response.content)
        self.assertFalse(data['isConnected'])
        self.assertIsNone(data['lastSync'])

    def test_expired_access_token_still_connected(self):
        self.connect(created_at=timezone.now() - timedelta(hours=2))

        response = self.client.get(reverse('quickbooks:status'), {'companyId': '9130'})

        data = json.loads(response.content)
        self.assertTrue(data['isConnected'])
        self.assertEqual(data['state'], 'expired')
        self.assertIsNotNone(data['lastSync'])

    def test_rejected_refresh_reports_disconnected(self):
        self.connect(created_at=timezone.now() - timedelta(hours=2), needs_reconnect=True)

        response = self.client.get(reverse('quickbooks:status'), {'companyId': '9130'})

        data = json.loads(response.content)
        self.assertFalse(data['isConnected'])
        self.assertEqual(data['state'], 'unrecoverable')
        self.assertIsNone(data['lastSync'])

    def test_disconnect_is_soft(self):
        self.connect()

        response = self.client.post(
            reverse('quickbooks:disconnect'),
            data=json.dumps({'companyId': '9130'}),
            content_type='application/json',
        )

        self.assertEqual(json.loads(response.content), {'success': True})
        self.assertFalse(QBOCredential.objects.get(realm_id='9130').is_active)

    def test_disconnect_all(self):
        self.connect('1')
        self.connect('2')

        response = self.client.post(reverse('quickbooks:disconnect'))

        self.assertEqual(response.status_code, 200)
        self.assertFalse(QBOCredential.objects.filter(is_active=True).exists())

    def test_companies(self):
        self.connect('1', company_name='Beta')
        self.connect('2', company_name='Alpha', is_active=False)

        response = self.client.get(reverse('quickbooks:companies'))
        self.assertEqual(json.loads(response.content), [{'id': '1', 'name': 'Beta', 'isActive': True}])

        response = self.client.get(reverse('quickbooks:companies'), {'all': 'true'})
        self.assertEqual(len(json.loads(response.content)), 2)


class LookupTest(QuickBooksViewTestCase):

    def setUp(self):
        super().setUp()
        self.connect()

    def test_bank_accounts(self):
        response = self.client.get(reverse('quickbooks:accounts'), {'companyId': '9130', 'type': 'Bank'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.content)[0]['Name'], 'Checking')
        self.assertEqual(self.gateway.calls, [('bank_accounts', '9130')])

    def test_chart_of_accounts_defaults_to_latest_company(self):
        response = self.client.get(reverse('quickbooks:accounts'))

        self.assertEqual(len(json.loads(response.content)), 2)
        self.assertEqual(self.gateway.calls, [('chart', '9130')])

    def test_contacts(self):
        vendors = json.loads(self.client.get(reverse('quickbooks:vendors')).content)
        customers = json.loads(self.client.get(reverse('quickbooks:customers')).content)

        self.assertEqual(vendors[0]['DisplayName'], 'Uber')
        self.assertEqual(customers[0]['DisplayName'], 'Acme Client')

    def test_company_info_requires_company(self):
        response = self.client.get(reverse('quickbooks:company_info'))
        self.assertEqual(response.status_code, 400)

        response = self.client.get(reverse('quickbooks:company_info'), {'companyId': '9130'})
        self.assertEqual(json.loads(response.content), {'CompanyName': 'Acme Ltd'})

    def test_other_users_company_is_rejected(self):
        other = User.objects.create_user(username='other', password='pw')
        self.connect('5555', user=other)

        response = self.client.get(reverse('quickbooks:vendors'), {'companyId': '5555'})

        self.assertEqual(response.status_code, 401)

    def test_report_passes_params(self):
        response = self.client.get(
            reverse('quickbooks:report', args=['ProfitAndLoss']),
            {'companyId': '9130', 'start_date': '2024-01-01', 'end_date': '2024-03-31'},
        )

        self.assertEqual(response.status_code, 200)
        _, name, params = self.gateway.calls[0]
        self.assertEqual(name, 'ProfitAndLoss')
        self.assertEqual(params['start_date'], '2024-01-01')
        self.assertEqual(params['end_date'], '2024-03-31')
        self.assertIsNone(params['date'])

    def test_report_fault_maps_to_502(self):
        self.gateway.report_error = RemoteFault('Report unavailable', error_code='HTTP_400')

        response = self.client.get(reverse('quickbooks:report', args=['BalanceSheet']))

        self.assertEqual(response.status_code, 502)
        self.assertEqual(json.loads(response.content)['error'], 'Report unavailable')

    @override_settings(QBO_POST_CONNECT_REDIRECT='/done')
    def test_callback_uses_configured_redirect(self):
        session = self.client.session
        session['qbo_oauth_state'] = 's'
        session.save()
        QBOCredential.objects.filter(realm_id='9130').update(created_at=timezone.now() - timedelta(hours=1))

        response = self.client.get(
            reverse('quickbooks:auth_callback'),
            {'code': 'abc', 'state': 's', 'realmId': '9130'},
        )

        self.assertEqual(response['Location'], '/done')
