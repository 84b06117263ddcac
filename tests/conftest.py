import os
import sys

import pytest

# ensure project root is on sys.path when running from tests/ folder
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# sin logs de profiling durante los tests
os.environ.setdefault('POS_ENABLE_PROFILING', '0')

from app_pos.models import Product  # noqa: E402
from app_pos.repositories import InMemoryKeyValueStore, PendingActionRepository  # noqa: E402
from app_pos.services import (  # noqa: E402
    CartService,
    DraftService,
    EventBus,
    OfflineQueueService,
    PricingService,
    SaleSubmissionService,
    SalesListService,
    TaxConfig,
)


# ==============================================================================
# FAKES DE COLABORADORES
# ==============================================================================

class FakeApiClient:
    """
    Cliente HTTP en memoria.

    script(method, path, *outcomes): cada llamada consume un resultado;
    el último se repite. Un resultado que es una excepción se lanza.
    """

    def __init__(self):
        self.calls = []
        self._scripts = {}

    def script(self, method, path, *outcomes):
        self._scripts[(method, path)] = list(outcomes)

    def calls_to(self, method, path):
        return [c for c in self.calls if c['method'] == method and c['path'] == path]

    async def _call(self, method, path, body=None, config=None):
        self.calls.append({'method': method, 'path': path, 'body': body, 'config': config or {}})
        outcomes = self._scripts.get((method, path))
        if not outcomes:
            return None
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def get(self, path, config=None):
        return await self._call('GET', path, None, config)

    async def post(self, path, body=None, config=None):
        return await self._call('POST', path, body, config)

    async def put(self, path, body=None, config=None):
        return await self._call('PUT', path, body, config)

    async def delete(self, path, config=None):
        return await self._call('DELETE', path, None, config)


class RecordingNotifier:
    def __init__(self):
        self.successes = []
        self.errors = []
        self.warnings = []

    def show_success(self, message, detail=None):
        self.successes.append((message, detail))

    def show_error(self, message, detail=None):
        self.errors.append((message, detail))

    def show_warning(self, message, detail=None):
        self.warnings.append((message, detail))


class FakeAuth:
    def __init__(self, role='cashier'):
        self.role = role
        self.is_authenticated = True
        self.logged_out = False

    def logout(self):
        self.is_authenticated = False
        self.logged_out = True


class FakeClock:
    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


def make_product(pid='p1', price=100.0, stock=5, max_discount=None, discountable=True, name=None):
    return Product(
        id=pid,
        name=name or f'Producto {pid}',
        sale_price=price,
        stock=stock,
        max_discount_percent=max_discount,
        discountable=discountable,
        sku=f'SKU-{pid}',
        barcode=f'750{pid}',
    )


# ==============================================================================
# FIXTURES
# ==============================================================================

@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def auth():
    return FakeAuth('cashier')


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def drafts(store):
    return DraftService(store)


@pytest.fixture
def pricing():
    return PricingService(TaxConfig(rate=0.16, enabled=True))


@pytest.fixture
def cart(pricing, auth, notifier, drafts):
    return CartService(pricing, auth, None, notifier, drafts)


@pytest.fixture
def api():
    return FakeApiClient()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def offline(tmp_path, api, clock):
    return OfflineQueueService(PendingActionRepository(str(tmp_path)), api, clock=clock)


@pytest.fixture
def events():
    bus = EventBus()
    bus.received = []
    bus.subscribe('sale:created', bus.received.append)
    return bus


@pytest.fixture
def sales_list(api, notifier):
    return SalesListService(api, notifier, sleep=_no_sleep)


@pytest.fixture
def submission(cart, drafts, api, offline, notifier, events, sales_list):
    return SaleSubmissionService(
        cart=cart,
        drafts=drafts,
        api=api,
        offline=offline,
        notifier=notifier,
        events=events,
        sales_list=sales_list,
    )


async def _no_sleep(seconds):
    return None
