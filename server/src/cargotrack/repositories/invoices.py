"""Read-only invoice lookups (invoices, their line items and customers)."""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Protocol, Sequence

from cargotrack.models import Customer, Invoice

from .base import DatabaseRepository


class InvoiceRepository(Protocol):
    """Protocol for invoice lookups."""

    def get_by_ref(self, invoice_ref: str) -> Optional[Invoice]:  # noqa: D401
        """Return the invoice with this reference."""

    def shipment_ids(self, invoice_id: str) -> List[str]:
        """Return ids of the shipments billed on the invoice, in line-item order."""

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        """Return the invoiced customer."""


class InMemoryInvoiceRepository:
    """In-memory invoice store for development/testing."""

    def __init__(self) -> None:
        self._invoices: Dict[str, Invoice] = {}
        self._items: Dict[str, List[str]] = {}
        self._customers: Dict[str, Customer] = {}
        self._lock = threading.Lock()

    def add(self, invoice: Invoice, shipment_ids: Sequence[str] = ()) -> Invoice:
        with self._lock:
            self._invoices[invoice.id] = invoice
            self._items[invoice.id] = list(shipment_ids)
        return invoice

    def add_customer(self, customer: Customer) -> Customer:
        with self._lock:
            self._customers[customer.id] = customer
        return customer

    def get_by_ref(self, invoice_ref: str) -> Optional[Invoice]:
        with self._lock:
            for invoice in self._invoices.values():
                if invoice.invoice_ref == invoice_ref:
                    return invoice
        return None

    def shipment_ids(self, invoice_id: str) -> List[str]:
        with self._lock:
            return list(dict.fromkeys(self._items.get(invoice_id, [])))

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        with self._lock:
            return self._customers.get(customer_id)


class DatabaseInvoiceRepository(DatabaseRepository):
    """PostgreSQL-backed invoice repository."""

    def get_by_ref(self, invoice_ref: str) -> Optional[Invoice]:
        with self._cursor(f"invoice lookup ref={invoice_ref}") as cur:
            cur.execute(
                """
                SELECT id::text AS id, invoice_ref, customer_id::text AS customer_id,
                       amount, status, invoice_date, due_date
                  FROM invoices
                 WHERE invoice_ref = %s
                 LIMIT 1
                """,
                (invoice_ref,),
            )
            row = cur.fetchone()
        if not row:
            return None
        amount = row.get("amount")
        return Invoice(
            id=row["id"],
            invoice_ref=row["invoice_ref"],
            customer_id=row.get("customer_id"),
            amount=float(amount) if amount is not None else None,
            status=row.get("status"),
            invoice_date=row.get("invoice_date"),
            due_date=row.get("due_date"),
        )

    def shipment_ids(self, invoice_id: str) -> List[str]:
        with self._cursor(f"invoice items invoice={invoice_id}") as cur:
            cur.execute(
                """
                SELECT shipment_id::text AS shipment_id
                  FROM invoice_items
                 WHERE invoice_id::text = %s
                   AND shipment_id IS NOT NULL
              ORDER BY id ASC
                """,
                (invoice_id,),
            )
            rows = cur.fetchall()
        return list(dict.fromkeys(row["shipment_id"] for row in rows))

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        with self._cursor(f"customer lookup id={customer_id}") as cur:
            cur.execute(
                "SELECT id::text AS id, name, phone, city FROM customers WHERE id::text = %s",
                (customer_id,),
            )
            row = cur.fetchone()
        if not row:
            return None
        return Customer(id=row["id"], name=row.get("name"), phone=row.get("phone"), city=row.get("city"))
