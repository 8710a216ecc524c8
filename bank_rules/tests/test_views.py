"""
Test Bank Rules API Views

CRUD endpoints and rule application over HTTP.
"""

import json

from django.contrib.auth.models import User
from django.test import TestCase, Client, override_settings
from django.urls import reverse

from quickbooks.models import QBOCredential
from ..models import BankRule, BankRuleCondition


class RulesAPITestCase(TestCase):

    def setUp(self):
        self.client = Client()
        self.user = User.objects.create_user(username='testuser', password='testpass123')
        self.client.login(username='testuser', password='testpass123')
        self.company = QBOCredential.objects.create(
            realm_id='9130',
            user=self.user,
            company_name='Acme Ltd',
            access_token='a',
            refresh_token='r',
        )

    def post_json(self, url, data):
        return self.client.post(url, data=json.dumps(data), content_type='application/json')

    def put_json(self, url, data):
        return self.client.put(url, data=json.dumps(data), content_type='application/json')

    def create_rule(self, **overrides):
        data = {
            'client_id': '9130',
            'rule_name': 'Uber rides',
            'matchType': 'ALL',
            'conditions': [{'field': 'Description', 'operator': 'contains', 'value': 'uber'}],
            'rule_type': 'Expense',
            'actions': {'ledger': 'Travel', 'contactId': '7'},
        }
        data.update(overrides)
        response = self.post_json(reverse('bank_rules:list'), data)
        self.assertEqual(response.status_code, 201, response.content)
        return json.loads(response.content)


class RuleCrudTest(RulesAPITestCase):

    def test_create_rule(self):
        rule = self.create_rule()

        self.assertEqual(rule['rule_name'], 'Uber rides')
        self.assertEqual(rule['client_id'], '9130')
        self.assertEqual(rule['matchType'], 'ALL')
        self.assertEqual(rule['actions'], {'ledger': 'Travel', 'contactId': '7'})
        self.assertEqual(rule['conditions'], [{'field': 'Description', 'operator': 'contains', 'value': 'uber'}])
        self.assertTrue(rule['is_active'])
        self.assertIsNotNone(rule['created_at'])

        stored = BankRule.objects.get(pk=rule['id'])
        self.assertEqual(stored.created_by, self.user)

    def test_legacy_match_type_is_normalised(self):
        rule = self.create_rule(matchType='OR')
        self.assertEqual(rule['matchType'], 'ANY')

    def test_create_rejects_bad_operator(self):
        response = self.post_json(reverse('bank_rules:list'), {
            'client_id': '9130',
            'rule_name': 'Broken',
            'conditions': [{'field': 'Description', 'operator': 'sounds_like', 'value': 'x'}],
        })

        self.assertEqual(response.status_code, 400)
        self.assertFalse(BankRule.objects.exists())

    def test_create_requires_name(self):
        response = self.post_json(reverse('bank_rules:list'), {'client_id': '9130', 'conditions': []})
        self.assertEqual(response.status_code, 400)

    def test_malformed_json(self):
        response = self.client.post(reverse('bank_rules:list'), data='{not json', content_type='application/json')
        self.assertEqual(response.status_code, 400)

    def test_list_includes_inactive_rules(self):
        self.create_rule(rule_name='Active')
        inactive = self.create_rule(rule_name='Inactive')
        BankRule.objects.filter(pk=inactive['id']).update(is_active=False)

        response = self.client.get(reverse('bank_rules:list'), {'companyId': '9130'})

        names = {rule['rule_name']: rule['is_active'] for rule in json.loads(response.content)}
        self.assertEqual(names, {'Active': True, 'Inactive': False})

    def test_list_other_users_company_rejected(self):
        other = User.objects.create_user(username='other', password='pw')
        QBOCredential.objects.create(realm_id='5555', user=other, access_token='a', refresh_token='r')

        response = self.client.get(reverse('bank_rules:list'), {'companyId': '5555'})

        self.assertEqual(response.status_code, 401)

    def test_partial_update(self):
        rule = self.create_rule()

        response = self.put_json(
            reverse('bank_rules:detail', args=[rule['id']]),
            {'actions': {'ledger': 'Meals'}},
        )

        updated = json.loads(response.content)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(updated['rule_name'], 'Uber rides')
        self.assertEqual(updated['actions'], {'ledger': 'Meals', 'contactId': '7'})
        self.assertEqual(len(updated['conditions']), 1)

    def test_update_replaces_conditions(self):
        rule = self.create_rule()

        response = self.put_json(reverse('bank_rules:detail', args=[rule['id']]), {
            'conditions': [
                {'field': 'Description', 'operator': 'starts_with', 'value': 'uber'},
                {'field': 'Amount', 'operator': 'lt', 'value': '0'},
            ],
        })

        updated = json.loads(response.content)
        self.assertEqual([c['operator'] for c in updated['conditions']], ['starts_with', 'lt'])
        self.assertEqual(BankRuleCondition.objects.filter(rule_id=rule['id']).count(), 2)

    def test_delete_is_soft(self):
        rule = self.create_rule()

        response = self.client.delete(reverse('bank_rules:detail', args=[rule['id']]))

        self.assertEqual(json.loads(response.content), {'success': True})
        stored = BankRule.objects.get(pk=rule['id'])
        self.assertFalse(stored.is_active)

    def test_unknown_rule_is_404(self):
        response = self.client.delete(reverse('bank_rules:detail', args=[999]))
        self.assertEqual(response.status_code, 404)

    def test_requires_login(self):
        self.client.logout()
        response = self.client.get(reverse('bank_rules:list'))
        self.assertEqual(response.status_code, 401)


class ApplyRulesTest(RulesAPITestCase):

    def apply(self, transactions):
        response = self.post_json(reverse('bank_rules:apply'), {
            'companyId': '9130',
            'transactions': transactions,
        })
        self.assertEqual(response.status_code, 200, response.content)
        return json.loads(response.content)

    def test_apply_annotates_matching_rows(self):
        self.create_rule()

        data = self.apply([
            {'Date': '15/03/2024', 'Description': 'UBER TRIP', 'Amount': '-12.40'},
            {'Date': '16/03/2024', 'Description': 'Groceries', 'Amount': '-80.00'},
            {'Date': '17/03/2024', 'Description': 'UBER EATS', 'Amount': '-20', 'rule_applied': 'Manual'},
        ])

        self.assertTrue(data['applied'])
        first, second, third = data['transactions']
        self.assertEqual(first['rule_applied'], 'Uber rides')
        self.assertEqual(first['suggested_ledger'], 'Travel')
        self.assertEqual(first['suggested_type'], 'Expense')
        self.assertEqual(first['amount'], '-12.40')
        self.assertEqual(second['rule_applied'], '')
        self.assertEqual(third['rule_applied'], 'Manual')
        self.assertEqual(third['suggested_ledger'], '')

    def test_deactivated_rules_are_ignored(self):
        rule = self.create_rule()
        self.client.delete(reverse('bank_rules:detail', args=[rule['id']]))

        data = self.apply([{'Description': 'UBER TRIP', 'Amount': '-12.40'}])

        self.assertFalse(data['applied'])

    def test_transactions_required(self):
        response = self.post_json(reverse('bank_rules:apply'), {'companyId': '9130'})
        self.assertEqual(response.status_code, 400)

    @override_settings(BANK_RULES_ENABLED=False)
    def test_feature_flag_returns_rows_unchanged(self):
        self.create_rule()
        rows = [{'Description': 'UBER TRIP', 'Amount': '-12.40'}]

        data = self.apply(rows)

        self.assertFalse(data['applied'])
        self.assertEqual(data['transactions'], rows)
