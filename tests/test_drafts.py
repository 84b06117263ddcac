import json

from app_pos import config
from app_pos.models import Client, PaymentDetails, PaymentMethod, Sale, SaleType
from app_pos.repositories import JsonKeyValueStore
from app_pos.services import DraftService
from app_pos.services import draft_service

from conftest import make_product


def _catalog(*products):
    return {p.id: p for p in products}


def test_draft_round_trip_restores_items(cart, drafts):
    p1 = make_product('p1', price=100.0, stock=5)
    p2 = make_product('p2', price=40.0, stock=9)
    cart.add_item(p1)
    cart.add_item(p1)
    cart.add_item(p2)
    cart.update_unit_price('p2', 35.5)
    cart.update_discount('p1', 15)

    restored = Sale()
    count = drafts.restore_into(restored, _catalog(p1, p2))

    assert count == 2
    original = [(i.product.id, i.quantity, i.unit_price, i.discount_percent) for i in cart.sale.items]
    again = [(i.product.id, i.quantity, i.unit_price, i.discount_percent) for i in restored.items]
    assert again == original


def test_restore_reapplies_payment_and_context(cart, drafts):
    cart.add_item(make_product('p1'))
    cart.set_payment_method('mixed')
    cart.set_payment_details({'cash': 50, 'card': 66, 'cardReference': 'R-77'})
    cart.set_sale_type('GUIDE')
    cart.set_client(Client('c9', 'Luis', 'Pérez'))

    restored = Sale()
    drafts.restore_into(restored, _catalog(make_product('p1')))

    assert restored.payment_method == PaymentMethod.MIXED
    assert restored.payment_details == PaymentDetails(cash=50.0, card=66.0, card_reference='R-77')
    assert restored.sale_type == SaleType.GUIDE
    assert restored.client.full_name == 'Luis Pérez'


def test_items_of_missing_products_are_dropped(cart, drafts):
    cart.add_item(make_product('p1'))
    cart.add_item(make_product('gone'))

    restored = Sale()
    assert drafts.restore_into(restored, _catalog(make_product('p1'))) == 1
    assert [i.product.id for i in restored.items] == ['p1']


def test_restore_without_draft_returns_minus_one(drafts):
    assert drafts.restore_into(Sale(), {}) == -1


def test_corrupt_draft_is_ignored(store, drafts):
    store.set(config.DRAFT_KEY, '{no es json')
    assert drafts.load_draft() is None
    assert drafts.restore_into(Sale(), {}) == -1


def test_backups_never_overwrite_each_other(monkeypatch, cart, drafts, store):
    monkeypatch.setattr(draft_service, 'now_ms', lambda: 1_700_000_000_000)
    cart.add_item(make_product('p1'))
    draft_before = store.get(config.DRAFT_KEY)

    first = drafts.create_backup(cart.sale)
    assert store.get(config.DRAFT_KEY) == draft_before

    cart.add_item(make_product('p2'))
    second = drafts.create_backup(cart.sale)

    assert first != second
    assert drafts.list_backups() == [first, second]
    assert drafts.latest_backup_key() == second
    assert first.startswith(drafts.backup_prefix)
    assert len(json.loads(store.get(first))['items']) == 1
    assert len(json.loads(store.get(second))['items']) == 2


def test_restore_latest_backup_replaces_current_draft(cart, drafts):
    cart.add_item(make_product('p1'))
    drafts.create_backup(cart.sale)
    cart.clear(confirmed=True)
    assert not drafts.has_draft()

    assert drafts.restore_latest_backup()
    restored = Sale()
    assert drafts.restore_into(restored, _catalog(make_product('p1'))) == 1


def test_restore_latest_backup_without_backups(drafts):
    assert not drafts.restore_latest_backup()


def test_cleanup_removes_draft_and_all_backups(cart, drafts, store):
    cart.add_item(make_product('p1'))
    drafts.create_backup(cart.sale)
    drafts.create_backup(cart.sale)

    assert drafts.cleanup() == 2
    assert store.keys(config.DRAFT_KEY) == []


def test_json_store_survives_new_instance(tmp_path):
    drafts = DraftService(JsonKeyValueStore(str(tmp_path)))
    sale = Sale()
    sale.cash_received = 120.0
    drafts.autosave(sale)

    reopened = DraftService(JsonKeyValueStore(str(tmp_path)))
    assert reopened.load_draft().cash_received == 120.0
