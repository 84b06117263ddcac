import asyncio

from app_pos.exceptions import ApiError, AuthError, NetworkError
from app_pos.models import (
    ActionPriority,
    ActionType,
    Agency,
    CommissionFormula,
    CommissionPolicy,
    Employee,
    Guide,
    SubmissionState,
)
from app_pos.services import CatalogService, SessionService
from app_pos.services.submission_service import BELOW_REFERENCE_SUBMIT_WARNING

from conftest import FakeApiClient, make_product


def _ready_street_sale(cart, product=None):
    cart.add_item(product or make_product('p1', price=100.0, stock=5))
    cart.set_cash_received(200)


def _ready_guide_sale(cart):
    _ready_street_sale(cart)
    cart.set_sale_type('GUIDE')
    cart.set_agency(Agency('a1', 'Agencia Sol', commission_rate=5.0))
    cart.set_guide(Guide('g1', 'Guía', CommissionPolicy(CommissionFormula.DISCOUNT_PERCENTAGE, 10.0, 20.0)))
    cart.set_employee(Employee('e1', 'Vendedor', policy=CommissionPolicy(CommissionFormula.DIRECT, 2.0),
                               street_card_rate=3.0, street_cash_rate=1.0))


class TransportRetryApi(FakeApiClient):
    """Simula un reintento transparente de la capa HTTP: cada POST se ve dos veces."""

    def __init__(self):
        super().__init__()
        self.seen_keys = []

    async def post(self, path, body=None, config=None):
        headers = (config or {}).get('headers', {})
        self.seen_keys.append(headers.get('Idempotency-Key'))
        self.seen_keys.append(headers.get('Idempotency-Key'))
        return await super().post(path, body, config)


def test_empty_cart_is_invalid_and_sends_nothing(submission, api, notifier):
    result = asyncio.run(submission.submit())

    assert result.state == SubmissionState.INVALID
    assert 'items' in result.errors
    assert api.calls == []
    assert notifier.errors
    assert not submission.processing


def test_payment_errors_block_submission(submission, cart, api):
    cart.add_item(make_product('p1'))
    cart.set_cash_received(10)

    result = asyncio.run(submission.submit())

    assert result.state == SubmissionState.INVALID
    assert 'cashReceived' in result.errors
    assert len(cart.sale.items) == 1
    assert api.calls == []


def test_stale_stock_is_flagged_per_item(submission, cart):
    product = make_product('p1', stock=3)
    cart.add_item(product)
    cart.add_item(product)
    product.stock = 1

    errors = submission.validate(cart.sale)
    assert 'Disponible: 1' in errors['item:p1']


def test_guide_sale_requires_agency_guide_and_employee(submission, cart):
    _ready_street_sale(cart)
    cart.set_sale_type('GUIDE')

    result = asyncio.run(submission.submit())

    assert result.state == SubmissionState.INVALID
    assert {'agency', 'guide', 'employee'} <= set(result.errors)


def test_offline_sale_is_queued_with_high_priority(submission, cart, offline, api, events, drafts):
    _ready_street_sale(cart)
    offline.set_offline_status(True)

    result = asyncio.run(submission.submit())

    assert result.state == SubmissionState.QUEUED_OFFLINE
    assert result.ok
    [action] = offline.pending_actions
    assert action.type == ActionType.CREATE_SALE
    assert action.priority == ActionPriority.HIGH
    assert action.max_retries == 5
    assert action.payload['total'] == 116.0
    assert api.calls == []
    assert events.received == [{'sale': result.payload, 'offline': True}]
    assert cart.sale.items == []
    assert not drafts.has_draft()


def test_live_sale_success_cleans_up(submission, cart, api, events, drafts, sales_list, notifier):
    api.script('POST', '/sales', {'id': 's1', 'total': 116.0})
    _ready_street_sale(cart)

    result = asyncio.run(submission.submit())

    assert result.state == SubmissionState.SUBMITTED
    [call] = api.calls_to('POST', '/sales')
    assert call['config']['suppress_global_error'] is True
    assert 'headers' not in call['config']
    assert call['body']['cashReceived'] == 200.0
    assert call['body']['change'] == 84.0
    assert 'idempotencyKey' not in call['body']
    assert sales_list.sales[0]['id'] == 's1'
    assert events.received == [{'sale': {'id': 's1', 'total': 116.0}, 'offline': False}]
    assert cart.sale.items == []
    assert not drafts.has_draft()
    assert drafts.list_backups() == []
    assert notifier.successes


def test_successful_sale_refreshes_stock(submission, cart, api, notifier):
    catalog = CatalogService(api, notifier)
    submission.catalog = catalog
    api.script('POST', '/sales', {'id': 's1'})
    api.script('GET', '/products', [{'id': 'p1', 'name': 'Collar', 'salePrice': 100, 'stock': 4}])
    _ready_street_sale(cart)

    asyncio.run(submission.submit())

    assert catalog.get_product('p1').stock == 4


def test_guide_sale_payload_carries_context_and_commissions(submission, cart, api):
    api.script('POST', '/sales', {'id': 's2'})
    _ready_guide_sale(cart)

    result = asyncio.run(submission.submit())

    body = api.calls_to('POST', '/sales')[0]['body']
    assert body['saleType'] == 'GUIDE'
    assert (body['agencyId'], body['guideId'], body['employeeId']) == ('a1', 'g1', 'e1')
    assert body['agencyCommission'] == 5.8
    assert body['guideCommission'] == 9.28
    assert body['employeeCommission'] == 2.32
    assert body['idempotencyKey'] == result.idempotency_key


def test_idempotency_key_is_stable_per_attempt_and_new_per_attempt(submission, cart):
    api = TransportRetryApi()
    api.script('POST', '/sales', NetworkError('Sin conexión'), {'id': 's3'})
    submission.api = api
    _ready_guide_sale(cart)

    first = asyncio.run(submission.submit())
    second = asyncio.run(submission.submit())

    assert first.state == SubmissionState.FAILED_RECOVERABLE
    assert second.state == SubmissionState.SUBMITTED
    assert api.seen_keys[0] == api.seen_keys[1] == first.idempotency_key
    assert api.seen_keys[2] == api.seen_keys[3] == second.idempotency_key
    assert first.idempotency_key != second.idempotency_key
    assert first.payload['idempotencyKey'] == first.idempotency_key


def test_failed_send_keeps_cart_and_offers_recovery(submission, cart, api, drafts, events, notifier):
    api.script('POST', '/sales', NetworkError('Error del servidor', 500))
    _ready_street_sale(cart)

    result = asyncio.run(submission.submit())

    assert result.state == SubmissionState.FAILED_RECOVERABLE
    assert result.offer_recovery
    assert result.backup_key in drafts.list_backups()
    assert len(cart.sale.items) == 1
    assert events.received == []
    assert notifier.errors
    assert not submission.processing


def test_recover_latest_backup_after_failure(submission, cart, api, notifier):
    catalog = CatalogService(api, notifier)
    product = make_product('p1', stock=5)
    catalog.products = {'p1': product}
    submission.catalog = catalog
    api.script('POST', '/sales', NetworkError('Sin conexión'))
    _ready_street_sale(cart, product)
    cart.update_quantity('p1', 3)
    cart.set_cash_received(400)

    failed = asyncio.run(submission.submit())
    assert failed.state == SubmissionState.FAILED_RECOVERABLE
    cart.clear(confirmed=True)

    result = submission.recover_latest_backup()
    assert result['ok']
    assert result['restored'] == 1
    assert cart.sale.items[0].quantity == 3
    assert cart.sale.cash_received == 400.0


def test_recover_without_backups(submission):
    assert not submission.recover_latest_backup()['ok']


def test_expired_session_logs_out_and_keeps_draft(submission, cart, api, auth, notifier, drafts):
    submission.session = SessionService(auth, notifier, drafts)
    api.script('POST', '/sales', AuthError('Token expirado', 401))
    _ready_street_sale(cart)

    result = asyncio.run(submission.submit())

    assert result.state == SubmissionState.FAILED_RECOVERABLE
    assert auth.logged_out
    assert drafts.has_draft()
    assert len(cart.sale.items) == 1


def test_submit_while_processing_is_busy(submission, cart, api):
    _ready_street_sale(cart)
    submission.processing = True

    result = asyncio.run(submission.submit())

    assert result.state == SubmissionState.BUSY
    assert api.calls == []


def test_price_below_reference_warns_but_submits(submission, cart, api, notifier):
    api.script('POST', '/sales', {'id': 's4'})
    _ready_street_sale(cart)
    cart.update_unit_price('p1', 90)

    result = asyncio.run(submission.submit())

    assert result.state == SubmissionState.SUBMITTED
    assert BELOW_REFERENCE_SUBMIT_WARNING in [message for message, _ in notifier.warnings]


def test_create_client_assigns_it_to_sale(submission, cart, api, drafts):
    api.script('POST', '/clients', {'id': 'c5', 'firstName': 'Ana', 'lastName': 'Ruiz'})
    _ready_street_sale(cart)

    result = asyncio.run(submission.create_client({'firstName': 'Ana', 'lastName': 'Ruiz'}))

    assert result['ok']
    assert cart.sale.client.full_name == 'Ana Ruiz'
    assert result['backup_key'] in drafts.list_backups()


def test_create_client_failure_keeps_backup(submission, cart, api, drafts, notifier):
    api.script('POST', '/clients', ApiError('Datos inválidos', 422))
    _ready_street_sale(cart)

    result = asyncio.run(submission.create_client({'firstName': ''}))

    assert not result['ok']
    assert result['backup_key'] in drafts.list_backups()
    assert cart.sale.client is None
    assert len(cart.sale.items) == 1
    assert notifier.errors


def test_create_client_offline_is_queued(submission, offline, api):
    offline.set_offline_status(True)

    result = asyncio.run(submission.create_client({'firstName': 'Luis'}))

    assert result['queued']
    [action] = offline.pending_actions
    assert action.type == ActionType.CREATE_CLIENT
    assert api.calls == []
