"""
Unit tests for the Order Store: optimistic status changes, rollback and
realtime merging.
"""

import pytest

from natapos.exceptions import PersistenceError, ConcurrentUpdateError, InvalidTransitionError, ValidationError
from natapos.services import order_service
from natapos.state.events import ORDERS_CHANGED


def _fail_write(*args, **kwargs):
    raise PersistenceError('database unreachable')


class TestCreate:

    def test_create_caches_order(self, state, kitchen_items):
        order = state.orders.create_order(kitchen_items)

        assert state.orders.get(order['id'])['status'] == 'waiting'
        assert [o['id'] for o in state.orders.active_orders()] == [order['id']]

    def test_failed_create_caches_nothing(self, state, monkeypatch, kitchen_items):
        monkeypatch.setattr(order_service, 'create_order', _fail_write)

        with pytest.raises(PersistenceError):
            state.orders.create_order(kitchen_items)

        assert state.orders.all() == []
        assert state.notifications.list(level='error')


class TestUpdateStatus:

    def test_success(self, state, kitchen_items):
        order = state.orders.create_order(kitchen_items)

        updated = state.orders.update_status(order['id'], 'cooking')

        assert updated['status'] == 'cooking'
        assert updated['version'] == 2
        assert not state.orders.is_pending(order['id'])

    def test_failure_restores_actual_prior_status(self, state, monkeypatch, kitchen_items):
        order = state.orders.create_order(kitchen_items)
        state.orders.update_status(order['id'], 'cooking')
        monkeypatch.setattr(order_service, 'update_order_status', _fail_write)

        with pytest.raises(PersistenceError):
            state.orders.update_status(order['id'], 'ready')

        assert state.orders.get(order['id'])['status'] == 'cooking'
        assert not state.orders.is_pending(order['id'])

    def test_failure_from_waiting_restores_waiting(self, state, monkeypatch, kitchen_items):
        order = state.orders.create_order(kitchen_items)
        monkeypatch.setattr(order_service, 'update_order_status', _fail_write)

        with pytest.raises(PersistenceError):
            state.orders.update_status(order['id'], 'cancelled')

        assert state.orders.get(order['id'])['status'] == 'waiting'

    def test_order_stays_actionable_after_failure(self, state, monkeypatch, kitchen_items):
        order = state.orders.create_order(kitchen_items)
        with monkeypatch.context() as m:
            m.setattr(order_service, 'update_order_status', _fail_write)
            with pytest.raises(PersistenceError):
                state.orders.update_status(order['id'], 'cooking')

        assert state.orders.update_status(order['id'], 'cooking')['status'] == 'cooking'

    def test_optimistic_status_visible_during_write(self, state, monkeypatch, kitchen_items):
        order = state.orders.create_order(kitchen_items)
        seen = {}

        def slow_write(session, order_id, target, expected_version=None):
            seen['status'] = state.orders.get(order_id)['status']
            seen['pending'] = state.orders.is_pending(order_id)
            raise PersistenceError('timeout')

        monkeypatch.setattr(order_service, 'update_order_status', slow_write)
        with pytest.raises(PersistenceError):
            state.orders.update_status(order['id'], 'cooking')

        assert seen == {'status': 'cooking', 'pending': True}

    def test_second_change_while_pending_rejected(self, state, monkeypatch, kitchen_items):
        order = state.orders.create_order(kitchen_items)
        errors = []

        def reentrant_write(session, order_id, target, expected_version=None):
            try:
                state.orders.update_status(order_id, 'ready')
            except ConcurrentUpdateError as e:
                errors.append(e)
            raise PersistenceError('timeout')

        monkeypatch.setattr(order_service, 'update_order_status', reentrant_write)
        with pytest.raises(PersistenceError):
            state.orders.update_status(order['id'], 'cooking')

        assert len(errors) == 1

    def test_same_status_is_noop(self, state, monkeypatch, kitchen_items):
        order = state.orders.create_order(kitchen_items)
        monkeypatch.setattr(order_service, 'update_order_status', _fail_write)

        result = state.orders.update_status(order['id'], 'waiting')

        assert result['version'] == 1

    def test_invalid_transition_touches_nothing(self, state, kitchen_items):
        order = state.orders.create_order(kitchen_items)

        with pytest.raises(InvalidTransitionError):
            state.orders.update_status(order['id'], 'completed')

        assert state.orders.get(order['id'])['status'] == 'waiting'

    def test_unknown_status(self, state, kitchen_items):
        order = state.orders.create_order(kitchen_items)

        with pytest.raises(ValidationError):
            state.orders.update_status(order['id'], 'eaten')


class TestRemoteChanges:

    def test_newer_version_replaces(self, state, kitchen_items):
        order = state.orders.create_order(kitchen_items)
        pushed = dict(order, status='cooking', version=order['version'] + 1)

        assert state.orders.apply_remote_change({'type': 'UPDATE', 'record': pushed})
        assert state.orders.get(order['id'])['status'] == 'cooking'

    def test_stale_version_ignored(self, state, kitchen_items):
        order = state.orders.create_order(kitchen_items)
        state.orders.update_status(order['id'], 'cooking')

        stale = dict(order, status='waiting', version=1)
        assert not state.orders.apply_remote_change({'type': 'UPDATE', 'record': stale})
        assert state.orders.get(order['id'])['status'] == 'cooking'

    def test_unknown_order_inserted(self, state, kitchen_items):
        order = state.orders.create_order(kitchen_items)
        other = dict(order, id=order['id'] + 100, order_number='NF-000000-999')

        state.orders.apply_remote_change({'type': 'INSERT', 'record': other})

        assert state.orders.get(other['id']) is not None

    def test_writes_reach_store_through_feed(self, state, session, kitchen_items):
        """A write made outside the store is delivered by the in-process feed."""
        order = order_service.create_order(session, kitchen_items)

        assert state.orders.get(order.id)['status'] == 'waiting'

    def test_observers_notified(self, state, kitchen_items):
        events = []
        state.bus.subscribe(ORDERS_CHANGED, lambda topic, payload: events.append(payload))

        order = state.orders.create_order(kitchen_items)
        state.orders.update_status(order['id'], 'cooking')

        assert any(e.get('optimistic') for e in events)
        assert events[-1]['status'] == 'cooking'


class TestLoad:

    def test_load_keeps_last_known_on_failure(self, state, monkeypatch, kitchen_items):
        state.orders.create_order(kitchen_items)
        state.orders.load()
        monkeypatch.setattr(order_service, 'list_orders', _fail_write)

        orders = state.orders.load()

        assert len(orders) == 1
        assert state.notifications.list(level='warning')

    def test_load_orders_oldest_first(self, state, session, kitchen_items):
        first = order_service.create_order(session, kitchen_items)
        second = order_service.create_order(session, kitchen_items)

        ids = [o['id'] for o in state.orders.load()]

        assert ids == [first.id, second.id]

    def test_history_cap_never_hides_active_orders(self, state, session, kitchen_items):
        waiting = order_service.create_order(session, kitchen_items)
        for _ in range(3):
            order_service.create_order(session, kitchen_items, status='completed', payment={'method': 'cash'})
        state.orders.fetch_limit = 2

        state.orders.load()

        assert [o['id'] for o in state.orders.active_orders()] == [waiting.id]
        assert len(state.orders.completed_orders()) == 2
        assert [card['id'] for card in state.kitchen.board()['lanes']['waiting']] == [waiting.id]
