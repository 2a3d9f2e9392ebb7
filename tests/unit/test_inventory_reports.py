"""
Unit tests for the inventory mirror and the sales report.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from natapos.exceptions import ValidationError, NotFoundError
from natapos.models import StockItem, InventoryAdjustment, InventoryAdjustmentItem
from natapos.services import inventory_service, order_service
from natapos.services.report_service import sales_report


@pytest.fixture
def stock_items(session):
    rice = StockItem(name='Beras', sku='BRS-01', unit='kg', current_stock=Decimal('20'), min_stock=Decimal('5'))
    eggs = StockItem(name='Telur', sku='TLR-01', unit='pcs', current_stock=Decimal('4'), min_stock=Decimal('30'))
    session.add_all([rice, eggs])
    session.commit()
    return rice, eggs


class TestInventory:

    def test_update_clamps_at_zero(self, session, stock_items):
        rice, _ = stock_items

        item = inventory_service.update_stock(session, rice.id, -3)

        assert item.current_stock == Decimal('0')
        assert item.version == 2

    def test_update_unknown_item(self, session):
        with pytest.raises(NotFoundError):
            inventory_service.update_stock(session, 404, 1)

    def test_update_bad_quantity(self, session, stock_items):
        with pytest.raises(ValidationError):
            inventory_service.update_stock(session, stock_items[0].id, 'lots')

    def test_store_low_stock(self, state, stock_items):
        state.inventory.load()

        assert [i['name'] for i in state.inventory.low_stock()] == ['Telur']

    def test_store_follows_feed(self, state, session, stock_items):
        rice, _ = stock_items
        state.inventory.load()

        inventory_service.update_stock(session, rice.id, 2)

        assert {i['name'] for i in state.inventory.low_stock()} == {'Beras', 'Telur'}

    def test_stale_push_ignored(self, state, stock_items):
        state.inventory.load()
        rice = state.inventory.items()[0]
        state.inventory.update_stock(rice['id'], 1)

        assert not state.inventory.apply_remote_change({'record': dict(rice, current_stock=Decimal('99'))})


class TestSalesReport:

    def test_revenue_by_method_and_refunds(self, session, kitchen_items):
        order_service.create_order(session, kitchen_items, status='completed',
                                   payment={'method': 'cash'}, tax_rate=Decimal('0.10'))
        order_service.create_order(session, kitchen_items, status='completed',
                                   payment={'method': 'qris'}, tax_rate=Decimal('0.10'))
        refunded = order_service.create_order(session, kitchen_items, payment={'method': 'cash'},
                                              tax_rate=Decimal('0.10'))
        order_service.update_order_status(session, refunded.id, 'refunded')
        order_service.create_order(session, kitchen_items)

        today = date.today()
        report = sales_report(session, today, today)

        assert report['order_count'] == 2
        assert report['revenue'] == Decimal('132000')
        assert report['average_order'] == Decimal('66000')
        assert report['revenue_by_method'] == {'cash': Decimal('66000'), 'qris': Decimal('66000')}
        assert report['refunded_count'] == 1
        assert report['refunded_total'] == Decimal('66000')

    def test_empty_range(self, session):
        yesterday = date.today() - timedelta(days=1)

        report = sales_report(session, yesterday, yesterday)

        assert report['order_count'] == 0
        assert report['average_order'] == Decimal('0')

    def test_inverted_range(self, session):
        with pytest.raises(ValidationError):
            sales_report(session, date.today(), date.today() - timedelta(days=1))


class TestStockCount:

    def test_count_records_system_and_physical(self, session, staff, stock_items):
        rice, eggs = stock_items

        adjustment = inventory_service.create_adjustment(session, [
            {'stock_item_id': rice.id, 'physical_qty': '18.5', 'reason': 'spilled'},
            {'stock_item_id': eggs.id, 'physical_qty': 4},
        ], notes='Weekly count', created_by=staff.id)

        lines = {line.stock_item_id: line for line in adjustment.items}
        assert lines[rice.id].system_qty == Decimal('20')
        assert lines[rice.id].physical_qty == Decimal('18.5')
        assert lines[rice.id].difference == Decimal('-1.5')
        assert lines[eggs.id].difference == Decimal('0')
        assert session.get(StockItem, rice.id).current_stock == Decimal('18.5')
        assert session.get(StockItem, eggs.id).version == 1

    def test_bad_line_writes_nothing(self, session, stock_items):
        rice, eggs = stock_items

        for lines in (
            [{'stock_item_id': rice.id, 'physical_qty': 5}, {'stock_item_id': eggs.id, 'physical_qty': 'NaN'}],
            [{'stock_item_id': rice.id, 'physical_qty': -1}],
            [{'stock_item_id': rice.id}],
            [{'stock_item_id': rice.id, 'physical_qty': 1}, {'stock_item_id': rice.id, 'physical_qty': 2}],
            [],
        ):
            with pytest.raises(ValidationError):
                inventory_service.create_adjustment(session, lines)

        assert session.query(InventoryAdjustment).count() == 0
        assert session.get(StockItem, rice.id).current_stock == Decimal('20')

    def test_unknown_item_rolls_back_whole_count(self, session, stock_items):
        rice, _ = stock_items

        with pytest.raises(NotFoundError):
            inventory_service.create_adjustment(session, [
                {'stock_item_id': rice.id, 'physical_qty': 1},
                {'stock_item_id': 404, 'physical_qty': 1},
            ])

        assert session.query(InventoryAdjustmentItem).count() == 0
        assert session.get(StockItem, rice.id).current_stock == Decimal('20')

    def test_movements_by_direction(self, session, stock_items):
        rice, eggs = stock_items
        inventory_service.create_adjustment(session, [
            {'stock_item_id': rice.id, 'physical_qty': 17},
            {'stock_item_id': eggs.id, 'physical_qty': 10},
        ])

        everything = inventory_service.list_stock_movements(session)
        found = inventory_service.list_stock_movements(session, direction='in')
        rice_only = inventory_service.list_stock_movements(session, item_id=rice.id)

        assert everything['total_in'] == Decimal('6')
        assert everything['total_out'] == Decimal('3')
        assert [m['name'] for m in found['movements']] == ['Telur']
        assert [m['type'] for m in rice_only['movements']] == ['out']

    def test_movements_bad_direction(self, session):
        with pytest.raises(ValidationError):
            inventory_service.list_stock_movements(session, direction='sideways')

    def test_store_takes_counted_levels(self, state, stock_items):
        rice, _ = stock_items
        state.inventory.load()

        state.inventory.create_adjustment([{'stock_item_id': rice.id, 'physical_qty': 3}])

        assert {i['name'] for i in state.inventory.low_stock()} == {'Beras', 'Telur'}
        assert state.notifications.list(level='success')

    def test_failed_load_keeps_mirror_and_session(self, state, session, stock_items, monkeypatch):
        state.inventory.load()

        def broken(db):
            db.add(StockItem(name=None, current_stock=Decimal('1')))
            db.flush()

        monkeypatch.setattr(inventory_service, 'list_stock_items', broken)

        assert len(state.inventory.load()) == 2
        assert state.notifications.list(level='warning')
        assert session.query(StockItem).count() == 2
