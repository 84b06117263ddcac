# -*- coding: utf-8 -*-
"""
Tests de la API JSON de la caja (Flask test client).
"""
import pytest

from app_pos import performance_logger
from app_pos.app_container import AppContainer
from app_pos.main import create_app
from app_pos.repositories import InMemoryKeyValueStore
from app_pos.services import AuthSession

from conftest import FakeApiClient

PRODUCTS = [
    {'id': 'p1', 'name': 'Collar de plata', 'salePrice': 100, 'stock': 5,
     'sku': 'CO-1', 'barcode': '7501'},
    {'id': 'p2', 'name': 'Aretes', 'salePrice': 50, 'stock': 0},
]


@pytest.fixture
def api():
    fake = FakeApiClient()
    fake.script('GET', '/products', PRODUCTS)
    fake.script('GET', '/agencies', [{'id': 'a1', 'name': 'Agencia Sol', 'commissionRate': 5}])
    fake.script('GET', '/guides', [{'id': 'g1', 'name': 'Guía', 'commissionRate': 10,
                                    'commissionFormula': 'DIRECT'}])
    fake.script('GET', '/employees', [{'id': 'e1', 'name': 'Vendedor'}])
    return fake


@pytest.fixture
def container(tmp_path, api):
    AppContainer.reset_instance()
    built = AppContainer(
        data_dir=str(tmp_path),
        api=api,
        auth=AuthSession('ana', 'cashier', 'tok'),
        store=InMemoryKeyValueStore(),
    )
    yield built
    AppContainer.reset_instance()


@pytest.fixture
def client(container):
    app = create_app(container)
    app.config['TESTING'] = True
    return app.test_client()


def _load_catalog(client):
    response = client.post('/api/catalogo/cargar')
    assert response.status_code == 200
    return response.get_json()


def test_catalog_load_lists_products(client):
    data = _load_catalog(client)
    assert {p['id'] for p in data['products']} == {'p1', 'p2'}
    assert data['restored'] is None


def test_full_cash_sale_flow(client, api):
    _load_catalog(client)

    response = client.post('/api/venta/items', json={'code': '7501'})
    assert response.status_code == 200

    response = client.patch('/api/venta/items/p1', json={'quantity': 2})
    assert response.get_json()['cart']['total_items'] == 2

    errors = client.get('/api/venta/errores').get_json()
    assert not errors['ok']
    assert 'cashReceived' in errors['errors']

    response = client.post('/api/venta/pago', json={'payment_method': 'cash', 'cash_received': '300'})
    assert response.get_json()['cart']['total'] == 232.0

    api.script('POST', '/sales', {'id': 's1', 'total': 232.0})
    response = client.post('/api/venta/confirmar')
    data = response.get_json()
    assert response.status_code == 200
    assert data['state'] == 'submitted'

    venta = client.get('/api/venta').get_json()
    assert venta['venta']['items'] == []
    assert any(n['level'] == 'success' for n in venta['notificaciones'])


def test_product_without_stock_is_rejected(client):
    _load_catalog(client)
    response = client.post('/api/venta/items', json={'product_id': 'p2'})
    assert response.status_code == 400


def test_unknown_product_returns_404(client):
    _load_catalog(client)
    response = client.post('/api/venta/items', json={'product_id': 'nope'})
    assert response.status_code == 404


def test_invalid_sale_returns_errors(client):
    response = client.post('/api/venta/confirmar')
    data = response.get_json()
    assert response.status_code == 400
    assert data['state'] == 'invalid'
    assert 'items' in data['errors']


def test_clear_requires_confirmation(client):
    _load_catalog(client)
    client.post('/api/venta/items', json={'product_id': 'p1'})

    response = client.post('/api/venta/limpiar', json={})
    assert response.status_code == 400
    assert response.get_json()['requires_confirmation']

    response = client.post('/api/venta/limpiar', json={'confirm': True})
    assert response.status_code == 200
    assert response.get_json()['cart']['items'] == []


def test_guide_context_is_taken_from_catalog(client, container):
    _load_catalog(client)
    response = client.post('/api/venta/contexto', json={
        'sale_type': 'GUIDE', 'agency_id': 'a1', 'guide_id': 'g1', 'employee_id': 'e1',
    })
    cart = response.get_json()['cart']
    assert (cart['agencyId'], cart['guideId'], cart['employeeId']) == ('a1', 'g1', 'e1')


def test_offline_sale_is_queued_and_synced_later(client, api):
    _load_catalog(client)
    client.post('/api/venta/items', json={'product_id': 'p1'})
    client.post('/api/venta/pago', json={'payment_method': 'card', 'reference': 'AUT-55'})
    client.post('/api/offline/estado', json={'offline': True})

    response = client.post('/api/venta/confirmar')
    assert response.get_json()['state'] == 'queued-offline'
    assert client.get('/api/offline/estado').get_json()['status']['totalActions'] == 1

    api.script('POST', '/sales', {'id': 's9'})
    response = client.post('/api/offline/estado', json={'offline': False})
    data = response.get_json()
    assert data['sync']['synced'] == 1
    assert data['status']['totalActions'] == 0
    assert api.calls_to('POST', '/sales')[0]['body']['cardReference'] == 'AUT-55'


def test_draft_is_restored_on_catalog_load(client, container):
    _load_catalog(client)
    client.post('/api/venta/items', json={'product_id': 'p1'})

    container.cart_service.sale.items = []
    data = _load_catalog(client)

    assert data['restored']['restored'] == 1
    assert client.get('/api/venta').get_json()['venta']['items'][0]['productId'] == 'p1'


def test_patch_with_invalid_field_leaves_line_untouched(client, container):
    _load_catalog(client)
    client.post('/api/venta/items', json={'product_id': 'p1'})

    response = client.patch('/api/venta/items/p1', json={'quantity': 2, 'unit_price': -1})

    assert response.status_code == 400
    assert response.get_json()['cart']['items'][0]['quantity'] == 1
    item = container.cart_service.sale.items[0]
    assert (item.quantity, item.unit_price) == (1, 100.0)
    assert container.draft_service.load_draft().items[0].quantity == 1


def test_performance_stats_can_be_read_and_reset(client):
    performance_logger.reset_stats()
    performance_logger._record('Confirmar venta', 12.0)

    data = client.get('/api/rendimiento').get_json()
    assert data['functions']['Confirmar venta']['calls'] == 1
    assert data['functions']['Confirmar venta']['max_time'] == 12.0

    assert client.delete('/api/rendimiento').status_code == 200
    assert client.get('/api/rendimiento').get_json()['functions'] == {}
