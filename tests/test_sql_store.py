import tempfile
import unittest
from decimal import Decimal
from pathlib import Path

from factories import FIXED_NOW, USER_ID, make_user, valid_arguments

from rapidinvoice.backends.invoices import generate_invoice_impl
from rapidinvoice.backends.invoices_errors import (
    DuplicateInvoiceNumberError,
    QuotaExceededError,
    StoreError,
)
from rapidinvoice.backends.invoices_storage import (
    InMemoryInvoiceStore,
    SqlInvoiceStore,
    create_store,
)
from rapidinvoice.context import ServerContext


class SqlInvoiceStoreTests(unittest.TestCase):
    def setUp(self):
        self.tempdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tempdir.cleanup)

        database = Path(self.tempdir.name) / "invoices.db"
        self.store = SqlInvoiceStore(f"sqlite:///{database}")
        self.store.connect()
        self.addCleanup(self.store.close)
        self.store.save_user(make_user(monthly_invoice_limit=2))

        self.context = ServerContext(api_key=USER_ID, store=self.store)

    def _generate(self, **overrides) -> str:
        return generate_invoice_impl(
            self.context, valid_arguments(**overrides), now=FIXED_NOW
        )

    def _usage(self) -> int:
        return self.store.find_user(USER_ID).current_invoice_usage

    def test_find_user_round_trip(self):
        user = self.store.find_user(USER_ID)

        self.assertEqual(user.email, "owner@rapidinvoice.eu")
        self.assertEqual(user.monthly_invoice_limit, 2)
        self.assertIsNone(self.store.find_user("missing"))

    def test_invoice_is_persisted_with_snapshots(self):
        self._generate(invoiceNumber="F-001", notes="Pago por transferencia")

        invoice = self.store.get_invoice("F-001")
        self.assertIsNotNone(invoice)
        self.assertEqual(invoice.client_data.email, "lucia@fernandez.com")
        self.assertEqual(invoice.company_data.name, "Estudio Norte")
        self.assertEqual(invoice.items[0].description, "Consultoría")
        self.assertEqual(invoice.items[0].total, Decimal("242"))
        self.assertEqual(invoice.total, Decimal("242"))
        self.assertEqual(invoice.notes, "Pago por transferencia")
        self.assertEqual(self._usage(), 1)

    def test_duplicate_number_is_translated_and_rolled_back(self):
        self._generate(invoiceNumber="F-001")

        with self.assertRaises(DuplicateInvoiceNumberError) as ctx:
            self._generate(invoiceNumber="F-001")

        self.assertNotIn("UNIQUE", str(ctx.exception))
        self.assertEqual(self._usage(), 1)

    def test_conditional_increment_stops_at_limit(self):
        self.assertTrue(self.store.increment_usage(USER_ID, limit=2))
        self.assertTrue(self.store.increment_usage(USER_ID, limit=2))
        self.assertFalse(self.store.increment_usage(USER_ID, limit=2))
        self.assertEqual(self._usage(), 2)

    def test_unconditional_increment(self):
        self.assertTrue(self.store.increment_usage(USER_ID))
        self.assertFalse(self.store.increment_usage("missing"))
        self.assertEqual(self._usage(), 1)

    def test_quota_is_enforced_after_limit_is_reached(self):
        self._generate()
        self._generate()

        with self.assertRaises(QuotaExceededError):
            self._generate()

        self.assertEqual(self._usage(), 2)

    def test_transaction_rolls_back_on_error(self):
        with self.assertRaises(RuntimeError):
            with self.store.transaction():
                self.store.increment_usage(USER_ID)
                raise RuntimeError("boom")

        self.assertEqual(self._usage(), 0)

    def test_operations_require_connection(self):
        store = SqlInvoiceStore("sqlite://")

        with self.assertRaises(StoreError):
            store.find_user(USER_ID)


def test_create_store_selects_backend():
    assert isinstance(create_store("memory://"), InMemoryInvoiceStore)
    assert isinstance(create_store("sqlite://"), SqlInvoiceStore)


if __name__ == "__main__":
    unittest.main()
