"""
QuickBooks Gateway
------------------
Authenticated calls against the QuickBooks Online accounting API.

Main entry point:
    QuickBooksGateway.call(realm_id, method, path, params, payload)

Everything that leaves this module is plain JSON (dict/list) or one of the
exceptions in ``quickbooks.exceptions``; callers never see httpx objects.
"""

import logging
import time

import httpx

from .exceptions import (
    AuthenticationError,
    QuickBooksError,
    RemoteFault,
    TransientNetworkError,
    ValidationError,
)

logger = logging.getLogger(__name__)

REPORT_NAMES = (
    'ProfitAndLoss',
    'BalanceSheet',
    'CashFlow',
    'AgedPayables',
    'AgedReceivables',
)

TRANSIENT_MARKERS = (
    'connection reset',
    'econnreset',
    'socket hang up',
    'network',
)


def extract_json(response):
    """
    Normalise a response object into its JSON body.

    Accepts a method-style extractor (``get_json()`` / ``json()``), a
    property-style body (``.json`` already holding a dict or list) and finally
    the raw object itself (``.data`` or the object as given).
    """
    for name in ('get_json', 'getJson'):
        extractor = getattr(response, name, None)
        if callable(extractor):
            return extractor()

    body = getattr(response, 'json', None)
    if callable(body):
        try:
            return body()
        except ValueError:
            if not getattr(response, 'content', b''):
                return {}
            raise RemoteFault(
                'QuickBooks returned a body that is not JSON',
                error_code='INVALID_JSON',
            )
    if isinstance(body, (dict, list)):
        return body

    data = getattr(response, 'data', None)
    if data:
        return data
    return response


def is_transient_error(exc):
    """True for network-level failures worth retrying"""
    if isinstance(exc, httpx.NetworkError):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)


def fault_message(body):
    """Pull the first human-readable error out of a QuickBooks Fault body"""
    if not isinstance(body, dict):
        return ''
    fault = body.get('Fault') or body.get('fault') or {}
    errors = fault.get('Error') or fault.get('error') or []
    if not errors:
        return ''
    first = errors[0]
    message = first.get('Message') or first.get('message') or ''
    detail = first.get('Detail') or first.get('detail') or ''
    if detail and detail != message:
        return f"{message}: {detail}" if message else detail
    return message


class RetryPolicy:
    """
    Bounded retry with exponential backoff for transient network failures.

    Attempt n (1-based) that fails transiently waits
    ``base_delay * factor ** (n - 1)`` before the next one.
    """

    def __init__(self, max_attempts=3, base_delay=0.5, factor=2, sleep=time.sleep):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.factor = factor
        self.sleep = sleep

    def delay_for(self, attempt):
        return self.base_delay * self.factor ** (attempt - 1)

    def run(self, func, label='request'):
        for attempt in range(1, self.max_attempts + 1):
            try:
                return func()
            except httpx.TransportError as exc:
                if not is_transient_error(exc):
                    raise TransientNetworkError(
                        f"Connection to QuickBooks failed: {exc}",
                        error_code='NETWORK_ERROR',
                        context={'label': label, 'attempts': attempt},
                    ) from exc

                if attempt == self.max_attempts:
                    logger.error(f"[QBO] {label} failed after {attempt} attempts: {exc}")
                    raise TransientNetworkError(
                        'Connection to QuickBooks temporarily unavailable',
                        error_code='RETRIES_EXHAUSTED',
                        context={'label': label, 'attempts': attempt},
                    ) from exc

                delay = self.delay_for(attempt)
                logger.warning(
                    f"[QBO] {label} retry {attempt}/{self.max_attempts} "
                    f"after {delay * 1000:.0f}ms: {exc}"
                )
                self.sleep(delay)
            except httpx.RequestError as exc:
                # Undecodable body, redirect loop: the request reached QuickBooks
                logger.error(f"[QBO] {label} returned an unreadable response: {exc}")
                raise RemoteFault(
                    f"QuickBooks response could not be read: {exc}",
                    error_code='INVALID_RESPONSE',
                    context={'label': label, 'attempts': attempt},
                ) from exc


class QuickBooksGateway:
    """
    Client for the QuickBooks Online v3 API, scoped to one credential manager.

    Use as a context manager so the underlying HTTP connection pool is closed.
    """

    SANDBOX_BASE_URL = 'https://sandbox-quickbooks.api.intuit.com/'
    PRODUCTION_BASE_URL = 'https://quickbooks.api.intuit.com/'

    def __init__(self, credentials, environment='sandbox', minor_version=65,
                 http_client=None, retry_policy=None, timeout=30.0):
        self.credentials = credentials
        self.environment = environment
        self.minor_version = minor_version
        self.retry_policy = retry_policy or RetryPolicy()
        self._owns_client = http_client is None
        self.http = http_client or httpx.Client(timeout=timeout)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self):
        if self._owns_client:
            self.http.close()

    @property
    def base_url(self):
        if self.environment == 'sandbox':
            return self.SANDBOX_BASE_URL
        return self.PRODUCTION_BASE_URL

    def company_url(self, realm_id, path):
        return f"{self.base_url}v3/company/{realm_id}/{path.lstrip('/')}"

    # --- Core call ---

    def call(self, realm_id, method, path, params=None, payload=None):
        """
        Execute one authenticated request and return its JSON body.

        ``params`` entries with falsy values are dropped rather than sent empty.
        """
        credential = self.credentials.get_valid_credential(realm_id)

        query_params = [('minorversion', str(self.minor_version))]
        for key, value in (params or {}).items():
            if value:
                query_params.append((key, str(value)))

        url = self.company_url(realm_id, path)
        headers = {
            'Authorization': f"Bearer {credential.access_token}",
            'Accept': 'application/json',
        }
        if payload is not None:
            headers['Content-Type'] = 'application/json'

        label = f"{method} {path}"

        def send():
            return self.http.request(
                method, url, params=query_params, headers=headers, json=payload
            )

        response = self.retry_policy.run(send, label=label)
        body = self._check_response(response, label)
        logger.debug(f"[QBO] {label} -> {response.status_code}")
        return body

    def _check_response(self, response, label):
        status = response.status_code
        if status in (401, 403):
            logger.warning(f"[QBO] {label} rejected with HTTP {status}")
            raise AuthenticationError(
                'QuickBooks rejected the access token',
                error_code='token_rejected',
                context={'status': status},
            )

        try:
            body = extract_json(response)
        except QuickBooksError:
            if status >= 400:
                raise RemoteFault(
                    f"QuickBooks returned HTTP {status}",
                    error_code=f"HTTP_{status}",
                    context={'status': status},
                )
            raise

        if status >= 400 or (isinstance(body, dict) and 'Fault' in body):
            message = fault_message(body) or f"QuickBooks returned HTTP {status}"
            logger.error(f"[QBO] {label} fault: {message}")
            raise RemoteFault(
                message,
                error_code=f"HTTP_{status}",
                context={'status': status, 'fault': body.get('Fault') if isinstance(body, dict) else None},
            )
        return body

    # --- Query methods ---

    def query(self, realm_id, statement):
        logger.info(f"[QBO] Executing query: {statement}")
        return self.call(realm_id, 'GET', 'query', params={'query': statement})

    def query_entities(self, realm_id, resource, where=None, max_results=None):
        """Run ``SELECT * FROM <resource>`` and always return a list"""
        statement = f"SELECT * FROM {resource}"
        if where:
            statement += f" WHERE {where}"
        if max_results:
            statement += f" MAXRESULTS {int(max_results)}"
        result = self.query(realm_id, statement)
        if not isinstance(result, dict):
            return []
        return (result.get('QueryResponse') or {}).get(resource) or []

    def get_bank_accounts(self, realm_id):
        return self.query_entities(realm_id, 'Account', where="AccountType = 'Bank'", max_results=1000)

    def get_chart_of_accounts(self, realm_id):
        return self.query_entities(realm_id, 'Account', max_results=1000)

    def get_vendors(self, realm_id):
        return self.query_entities(realm_id, 'Vendor')

    def get_customers(self, realm_id):
        return self.query_entities(realm_id, 'Customer')

    def get_company_info(self, realm_id):
        rows = self.query_entities(realm_id, 'CompanyInfo')
        return rows[0] if rows else None

    # --- Reports ---

    def get_report(self, realm_id, report_name, **params):
        if report_name not in REPORT_NAMES:
            raise ValidationError(
                f"Unknown report: {report_name}",
                error_code='UNKNOWN_REPORT',
                context={'allowed': list(REPORT_NAMES)},
            )
        return self.call(realm_id, 'GET', f"reports/{report_name}", params=params)

    # --- Entity creation ---

    def create_entity(self, realm_id, entity_name, payload):
        return self.call(realm_id, 'POST', entity_name.lower(), payload=payload)
