"""Seed a shipment with barcodes (and optionally an invoice) for local tracking tests."""

from __future__ import annotations

import argparse
from typing import List, Optional

import psycopg


def seed_shipment(
    dsn: str,
    shipment_ref: str,
    barcodes: List[str],
    weight: float,
    invoice_ref: Optional[str] = None,
) -> None:
    with psycopg.connect(dsn) as conn, conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO shipments (shipment_ref, origin, destination, weight, status)
            VALUES (%s, %s, %s, %s, 'booked')
            RETURNING id
            """,
            (shipment_ref, "Guwahati", "Imphal", weight),
        )
        (shipment_id,) = cur.fetchone()
        for number in barcodes:
            cur.execute(
                """
                INSERT INTO barcodes (barcode_number, shipment_id, status)
                VALUES (%s, %s, 'created')
                ON CONFLICT (barcode_number) DO NOTHING
                """,
                (number, shipment_id),
            )
        if invoice_ref:
            cur.execute(
                "INSERT INTO invoices (invoice_ref, status) VALUES (%s, 'pending') RETURNING id",
                (invoice_ref,),
            )
            (invoice_id,) = cur.fetchone()
            cur.execute(
                "INSERT INTO invoice_items (invoice_id, shipment_id) VALUES (%s, %s)",
                (invoice_id, shipment_id),
            )
        conn.commit()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed tracking demo data")
    parser.add_argument("--dsn", required=True)
    parser.add_argument("--shipment", required=True, help="Shipment reference")
    parser.add_argument("--barcode", action="append", required=True, help="Barcode number (repeatable)")
    parser.add_argument("--weight", type=float, default=1.0)
    parser.add_argument("--invoice", help="Optional invoice reference billing the shipment")
    args = parser.parse_args()
    seed_shipment(
        dsn=args.dsn,
        shipment_ref=args.shipment,
        barcodes=args.barcode,
        weight=args.weight,
        invoice_ref=args.invoice,
    )


if __name__ == "__main__":
    main()
