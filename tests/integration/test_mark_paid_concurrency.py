"""
Integration tests: concurrent mark-paid never oversells.
"""

import threading

from ryme import database
from ryme.exceptions import ConflictError, InsufficientStockError
from ryme.models import Order, Product
from ryme.services import order_service
from ryme.services.stock_ledger import mark_order_paid


def _pay_concurrently(order_ids, attempts=20):
    """Mark every order paid from its own thread; returns {order_id: outcome}."""
    outcomes = {}
    lock = threading.Lock()
    barrier = threading.Barrier(len(order_ids))

    def worker(order_id):
        session = database.db_session
        barrier.wait()
        try:
            mark_order_paid(session, order_id, attempts=attempts, backoff_base=0.01)
            outcome = 'paid'
        except InsufficientStockError:
            outcome = 'insufficient'
        except ConflictError:
            outcome = 'conflict'
        finally:
            session.remove()
        with lock:
            outcomes.setdefault(order_id, []).append(outcome)

    threads = [threading.Thread(target=worker, args=(order_id,)) for order_id in order_ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return outcomes


class TestConcurrentMarkPaid:

    def test_overlapping_demand_never_goes_negative(self, session, product_factory):
        scarce = product_factory('Perfume', stock=3)
        plenty = product_factory('Lotion', stock=10)
        scarce_id, plenty_id = scarce.id, plenty.id

        order_ids = [
            order_service.create_order(session, f'Customer {i}', [
                {'product_id': scarce_id, 'quantity': 1},
                {'product_id': plenty_id, 'quantity': 1},
            ]).id
            for i in range(6)
        ]
        session.remove()

        outcomes = _pay_concurrently(order_ids)

        flat = [result for results in outcomes.values() for result in results]
        assert flat.count('paid') == 3
        assert flat.count('insufficient') == 3

        check = database.db_session
        assert check.get(Product, scarce_id).stock_quantity == 0
        assert check.get(Product, plenty_id).stock_quantity == 7
        paid = check.query(Order).filter(Order.payment_status == 'Paid').count()
        assert paid == 3

    def test_same_order_paid_twice_concurrently(self, session, product_factory):
        product = product_factory('Perfume', stock=5)
        product_id = product.id
        order_id = order_service.create_order(session, 'Ana', [{'product_id': product_id, 'quantity': 2}]).id
        session.remove()

        outcomes = _pay_concurrently([order_id, order_id])

        assert sorted(outcomes[order_id]) == ['conflict', 'paid']
        assert database.db_session.get(Product, product_id).stock_quantity == 3
