"""
Concurrency tests against a file-backed SQLite database.

Each worker runs in its own thread and app context, so every worker has
its own session and connection.
"""

import os
import tempfile
import threading
import unittest

from boutique import create_app
from boutique.errors import ConflictError, InsufficientStockError, NotFoundError
from boutique.extensions import db
from boutique.models import CashRegisterSession, Client, Order, Product, ProductSize, User
from boutique.schemas import parse_checkout
from boutique.services import checkout_service, client_service, register_service


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "BCRYPT_ROUNDS": 4,
            "LOG_LEVEL": "WARNING",
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            user = User(email="concurrent@test.local", name="Concurrent", role="ADMIN", password_hash="dummy")
            db.session.add(user)

            product = Product(name="Linen Dress", sku="CONCUR-1", price_cents=4990, cost_cents=2000)
            product.sizes.append(ProductSize(size="M", stock=10))
            product.recompute_stock()
            db.session.add(product)

            customer = Client(name="Concurrent Client", balance_cents=0)
            db.session.add(customer)
            db.session.commit()

            self.user_id = user.id
            self.product_id = product.id
            self.client_id = customer.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run_workers(self, count, target):
        results = []
        errors = []
        lock = threading.Lock()

        def worker():
            with self.app.app_context():
                try:
                    user = db.session.get(User, self.user_id)
                    value = target(user)
                    with lock:
                        results.append(value)
                except Exception as exc:  # collected for assertions
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker) for _ in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results, errors

    def test_checkout_never_oversells(self):
        with self.app.app_context():
            user = db.session.get(User, self.user_id)
            register_service.open_register(user, 0)
            db.session.remove()

        def sell(user):
            request = parse_checkout({
                "items": [{"product_id": self.product_id, "size": "M", "quantity": 2}],
                "payments": [{"method": "CASH", "amount_cents": 9980}],
            })
            return checkout_service.process_checkout(request, user).order["id"]

        results, errors = self._run_workers(8, sell)

        self.assertEqual(len(results), 5)
        self.assertEqual(len(errors), 3)
        self.assertTrue(all(isinstance(e, InsufficientStockError) for e in errors), errors)

        with self.app.app_context():
            size_row = db.session.query(ProductSize).filter_by(product_id=self.product_id, size="M").one()
            self.assertEqual(size_row.stock, 0)
            self.assertEqual(db.session.get(Product, self.product_id).stock, 0)
            self.assertEqual(db.session.query(Order).count(), 5)

            register = db.session.query(CashRegisterSession).one()
            self.assertEqual(register.sales_count, 5)
            self.assertEqual(register.total_sales_cents, 5 * 9980)
            self.assertEqual(register.total_cash_cents, 5 * 9980)

    def test_single_open_register_per_cashier(self):
        results, errors = self._run_workers(4, lambda user: register_service.open_register(user, 0).id)

        self.assertEqual(len(results), 1)
        self.assertEqual(len(errors), 3)
        self.assertTrue(all(isinstance(e, ConflictError) for e in errors), errors)

    def test_deferred_order_settles_once(self):
        with self.app.app_context():
            user = db.session.get(User, self.user_id)
            request = parse_checkout({
                "items": [{"product_id": self.product_id, "size": "M", "quantity": 1}],
                "client_id": self.client_id,
                "pay_later": True,
            })
            order_id = checkout_service.process_checkout(request, user).order["id"]
            db.session.remove()

        results, errors = self._run_workers(
            4, lambda user: client_service.settle_order(self.client_id, order_id, actor=user).id
        )

        self.assertEqual(len(results), 1)
        self.assertTrue(all(isinstance(e, NotFoundError) for e in errors), errors)

        with self.app.app_context():
            self.assertEqual(db.session.get(Client, self.client_id).balance_cents, 0)
            self.assertEqual(db.session.get(Order, order_id).remaining_cents, 0)


if __name__ == "__main__":
    unittest.main()
