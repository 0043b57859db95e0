"""
Record store collaborators.

The intake core performs read lookups for clients and pending tests and
hands classification results back for persistence. Two implementations are
provided: an in-memory store loaded from CSV exports, and an HTTP store
talking to the CMS REST API.
"""

import csv
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.exceptions import InsecureRequestWarning
from urllib3.exceptions import TimeoutError as TransportTimeout
from urllib3.util.retry import Retry

from .config import config
from .core.data_models import ClientMedication, ClientRecord, PendingTest
from .core.exceptions import ClientNotFound, LookupFailure, LookupTimeout
from .utils.normalizers import normalize_string

TRUE_VALUES = ('true', 'yes', 'y', '1')
NOT_PENDING_STATUSES = ('complete',)


class RecordStore(ABC):
    """Abstract record store - implement for different backends."""

    @abstractmethod
    def find_clients_by_name(self,
                             first_name: str,
                             last_name: str,
                             middle_initial: Optional[str] = None,
                             limit: int = 5) -> List[ClientRecord]:
        """Clients whose names equal the given names, case-insensitively."""

    @abstractmethod
    def list_indexed_clients(self, limit: int = 100) -> List[ClientRecord]:
        """Candidate pool for fuzzy lookups."""

    @abstractmethod
    def get_client(self, client_id: str) -> ClientRecord:
        """Get a single client with medications. Raises ClientNotFound."""

    @abstractmethod
    def list_pending_tests(self, limit: int = 100) -> List[PendingTest]:
        """Test records awaiting results."""

    @abstractmethod
    def save_test_result(self, test_id: str, fields: Dict[str, Any]) -> None:
        """Persist classification, decision and status fields in one write."""


def _names_equal(client: ClientRecord,
                 first_name: str,
                 last_name: str,
                 middle_initial: Optional[str]) -> bool:
    if normalize_string(client.first_name) != normalize_string(first_name):
        return False
    if normalize_string(client.last_name) != normalize_string(last_name):
        return False
    if middle_initial:
        return normalize_string(client.middle_initial) == normalize_string(middle_initial)
    return True


class InMemoryRecordStore(RecordStore):
    """Record store backed by in-memory lists (CSV exports, tests)."""

    def __init__(self,
                 clients: Optional[List[ClientRecord]] = None,
                 tests: Optional[List[PendingTest]] = None):
        self.clients: List[ClientRecord] = list(clients or [])
        self.tests: List[PendingTest] = list(tests or [])
        self.saved_results: Dict[str, Dict[str, Any]] = {}

    @classmethod
    def from_csv(cls,
                 clients_file: Optional[str] = None,
                 medications_file: Optional[str] = None,
                 tests_file: Optional[str] = None) -> 'InMemoryRecordStore':
        """
        Load a record store from CSV exports.

        Args:
            clients_file: CSV with id, first_name, last_name, middle_initial, email, dob
            medications_file: CSV with client_id, medication_name, status,
                detected_as (semicolon separated), require_confirmation
            tests_file: CSV with id, client_name, test_type, collection_date,
                screening_status, client_id

        Returns:
            InMemoryRecordStore
        """
        clients = load_clients_csv(clients_file) if clients_file else []
        if medications_file:
            by_id = {c.id: c for c in clients}
            for client_id, medication in load_medications_csv(medications_file):
                if client_id not in by_id:
                    logging.warning(f"Skipping medication for unknown client: {client_id}")
                    continue
                by_id[client_id].medications.append(medication)
        tests = load_tests_csv(tests_file) if tests_file else []
        return cls(clients=clients, tests=tests)

    def find_clients_by_name(self, first_name, last_name, middle_initial=None, limit=5):
        matches = [c for c in self.clients if _names_equal(c, first_name, last_name, middle_initial)]
        return matches[:limit]

    def list_indexed_clients(self, limit=100):
        return self.clients[:limit]

    def get_client(self, client_id):
        for client in self.clients:
            if client.id == client_id:
                return client
        raise ClientNotFound(client_id)

    def list_pending_tests(self, limit=100):
        pending = [t for t in self.tests
                   if normalize_string(t.screening_status) not in NOT_PENDING_STATUSES]
        return pending[:limit]

    def save_test_result(self, test_id, fields):
        self.saved_results.setdefault(test_id, {}).update(fields)


def load_clients_csv(clients_file: str) -> List[ClientRecord]:
    """Load client records from a CSV export."""
    clients = []

    logging.info(f"Loading clients from: {clients_file}")

    with open(clients_file, 'r', encoding='utf-8') as file:
        reader = csv.DictReader(file)

        for row in reader:
            client_id = (row.get('id') or '').strip()
            first_name = (row.get('first_name') or '').strip()
            last_name = (row.get('last_name') or '').strip()

            if not all([client_id, first_name, last_name]):
                logging.warning(f"Skipping incomplete client record: {row}")
                continue

            clients.append(ClientRecord(
                id=client_id,
                first_name=first_name,
                last_name=last_name,
                middle_initial=(row.get('middle_initial') or '').strip() or None,
                email=(row.get('email') or '').strip() or None,
                dob=(row.get('dob') or '').strip() or None
            ))

    logging.info(f"Loaded {len(clients)} client records")
    return clients


def load_medications_csv(medications_file: str) -> List[tuple]:
    """Load (client_id, ClientMedication) pairs from a CSV export."""
    medications = []

    with open(medications_file, 'r', encoding='utf-8') as file:
        reader = csv.DictReader(file)

        for row in reader:
            client_id = (row.get('client_id') or '').strip()
            name = (row.get('medication_name') or '').strip()

            if not client_id or not name:
                logging.warning(f"Skipping incomplete medication record: {row}")
                continue

            detected_as = [s for s in (row.get('detected_as') or '').split(';') if s.strip()]
            medications.append((client_id, ClientMedication(
                medication_name=name,
                status=(row.get('status') or 'active').strip().lower(),
                detected_as=detected_as,
                require_confirmation=(row.get('require_confirmation') or '').strip().lower() in TRUE_VALUES
            )))

    logging.info(f"Loaded {len(medications)} medication records")
    return medications


def load_tests_csv(tests_file: str) -> List[PendingTest]:
    """Load pending test records from a CSV export."""
    tests = []

    with open(tests_file, 'r', encoding='utf-8') as file:
        reader = csv.DictReader(file)

        for row in reader:
            test_id = (row.get('id') or '').strip()
            if not test_id:
                logging.warning(f"Skipping test record without id: {row}")
                continue

            tests.append(PendingTest(
                id=test_id,
                client_name=(row.get('client_name') or '').strip(),
                test_type=(row.get('test_type') or '').strip(),
                collection_date=(row.get('collection_date') or '').strip() or None,
                screening_status=(row.get('screening_status') or 'collected').strip(),
                client_id=(row.get('client_id') or '').strip() or None
            ))

    logging.info(f"Loaded {len(tests)} test records")
    return tests


def _is_transport_timeout(error: requests.RequestException) -> bool:
    """Check whether a request failed because a connect or read timed out."""
    cause = error.args[0] if error.args else None
    reason = getattr(cause, 'reason', None)
    return isinstance(cause, TransportTimeout) or isinstance(reason, TransportTimeout)


class HttpRecordStore(RecordStore):
    """
    Record store backed by the CMS REST API.

    Transient failures (connection errors, 429/502/503/504) on reads are
    retried a bounded number of times. An empty result set is returned as-is
    and never retried.
    """

    def __init__(self,
                 base_url: Optional[str] = None,
                 token: Optional[str] = None,
                 timeout: Optional[float] = None,
                 max_retries: Optional[int] = None,
                 verify_ssl: Optional[bool] = None,
                 session: Optional[requests.Session] = None):
        """
        Args:
            base_url: API root, e.g. https://clinic.example.com/api
            token: Bearer token for API authentication
            timeout: Per-request timeout in seconds
            max_retries: Bounded retry count for transient failures
            verify_ssl: Verify TLS certificates
            session: Pre-configured session (tests)
        """
        self.base_url = (base_url or config.RECORD_STORE_URL).rstrip('/')
        self.timeout = timeout if timeout is not None else config.RECORD_STORE_TIMEOUT
        self.verify_ssl = config.VERIFY_SSL if verify_ssl is None else verify_ssl
        max_retries = config.RECORD_STORE_MAX_RETRIES if max_retries is None else max_retries
        token = token or config.RECORD_STORE_TOKEN

        if not self.verify_ssl:
            # Self-signed certificates on clinic intranet deployments
            urllib3.disable_warnings(InsecureRequestWarning)

        if session is None:
            session = requests.Session()
            retry = Retry(
                total=max_retries,
                backoff_factor=0.5,
                status_forcelist=(429, 502, 503, 504),
                allowed_methods=frozenset(['GET']),
                raise_on_status=False
            )
            adapter = HTTPAdapter(max_retries=retry)
            session.mount('http://', adapter)
            session.mount('https://', adapter)

        self.session = session
        self.session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
        })
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

        self.logger = logging.getLogger(__name__)

    def _request(self, method: str, path: str, params: Optional[dict] = None,
                 payload: Optional[dict] = None) -> dict:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=payload,
                timeout=self.timeout,
                verify=self.verify_ssl
            )
            response.raise_for_status()
            return response.json() if response.content else {}
        except requests.Timeout as e:
            self.logger.error(f"Record store timeout after {self.timeout}s: {method} {url}")
            raise LookupTimeout(f"{method} {url} timed out after {self.timeout}s") from e
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else 'unknown'
            self.logger.error(f"Record store error {status}: {method} {url}")
            raise LookupFailure(f"{method} {url} failed with status {status}") from e
        except requests.RequestException as e:
            # Exhausted retries surface as ConnectionError(MaxRetryError(reason=...))
            if _is_transport_timeout(e):
                self.logger.error(f"Record store timeout after {self.timeout}s: {method} {url}")
                raise LookupTimeout(f"{method} {url} timed out after {self.timeout}s") from e
            self.logger.error(f"Record store request failed: {method} {url}: {e}")
            raise LookupFailure(f"{method} {url} failed: {e}") from e
        except ValueError as e:
            raise LookupFailure(f"{method} {url} returned invalid JSON") from e

    def find_clients_by_name(self, first_name, last_name, middle_initial=None, limit=5):
        params = {
            'where[firstName][like]': first_name,
            'where[lastName][like]': last_name,
            'limit': 100,
            'depth': 0,
        }
        docs = self._request('GET', 'clients', params=params).get('docs', [])
        clients = [client_from_api(doc) for doc in docs]
        # 'like' is a contains match; keep only exact, case-insensitive names
        matches = [c for c in clients if _names_equal(c, first_name, last_name, middle_initial)]
        return matches[:limit]

    def list_indexed_clients(self, limit=100):
        search = self._request('GET', 'search', params={
            'where[doc.relationTo][equals]': 'clients',
            'limit': limit,
            'depth': 0,
        })
        client_ids = [
            doc.get('doc', {}).get('value') for doc in search.get('docs', [])
            if isinstance(doc.get('doc', {}).get('value'), str)
        ]
        if not client_ids:
            return []

        docs = self._request('GET', 'clients', params={
            'where[id][in]': ','.join(client_ids),
            'limit': limit,
            'depth': 0,
        }).get('docs', [])
        return [client_from_api(doc) for doc in docs]

    def get_client(self, client_id):
        try:
            doc = self._request('GET', f'clients/{client_id}', params={'depth': 0})
        except LookupFailure as e:
            cause = e.__cause__
            if isinstance(cause, requests.HTTPError) and cause.response is not None \
                    and cause.response.status_code == 404:
                raise ClientNotFound(client_id) from e
            raise
        return client_from_api(doc)

    def list_pending_tests(self, limit=100):
        docs = self._request('GET', 'drug-tests', params={
            'where[screeningStatus][not_in]': ','.join(NOT_PENDING_STATUSES),
            'limit': limit,
            'depth': 1,
            'sort': '-collectionDate',
        }).get('docs', [])
        return [pending_test_from_api(doc) for doc in docs]

    def save_test_result(self, test_id, fields):
        self.logger.info(f"Saving results for test {test_id}: {sorted(fields)}")
        self._request('PATCH', f'drug-tests/{test_id}', payload=to_api_fields(fields))


def client_from_api(doc: dict) -> ClientRecord:
    """Map a CMS client document to a ClientRecord."""
    medications = [
        ClientMedication(
            medication_name=med.get('medicationName', ''),
            status=med.get('status', 'active'),
            detected_as=list(med.get('detectedAs') or []),
            require_confirmation=med.get('requireConfirmation') is True
        )
        for med in doc.get('medications') or []
    ]
    return ClientRecord(
        id=str(doc.get('id', '')),
        first_name=doc.get('firstName', ''),
        last_name=doc.get('lastName', ''),
        middle_initial=doc.get('middleInitial') or None,
        email=doc.get('email') or None,
        dob=doc.get('dob') or None,
        medications=medications
    )


def pending_test_from_api(doc: dict) -> PendingTest:
    """Map a CMS drug test document to a PendingTest."""
    related = doc.get('relatedClient')
    client_id = None
    client_name = doc.get('clientName', '')
    if isinstance(related, dict):
        client_id = str(related.get('id', '')) or None
        if not client_name:
            client_name = f"{related.get('firstName', '')} {related.get('lastName', '')}".strip()
    elif isinstance(related, str):
        client_id = related

    return PendingTest(
        id=str(doc.get('id', '')),
        client_name=client_name,
        test_type=doc.get('testType', ''),
        collection_date=doc.get('collectionDate'),
        screening_status=doc.get('screeningStatus') or 'collected',
        client_id=client_id
    )


def to_api_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Convert snake_case result fields to the CMS camelCase field names."""
    converted = {}
    for key, value in fields.items():
        head, *rest = key.split('_')
        converted[head + ''.join(part.capitalize() for part in rest)] = value
    return converted
