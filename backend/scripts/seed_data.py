"""
Seed script to generate synthetic vendors and invoices for demo purposes
"""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.orm import Session
from invoice_intake.database import SessionLocal
from invoice_intake.schemas.invoice import CreateInvoiceInput
from invoice_intake.services.invoice_service import create_invoice
from datetime import timedelta
from faker import Faker

fake = Faker()


def build_vendor() -> dict:
    return {
        "name": fake.unique.company(),
        "address": fake.address().replace("\n", ", "),
        "email": fake.unique.company_email(),
        "phone": fake.phone_number(),
    }


def build_invoice(vendor: dict, number: int) -> CreateInvoiceInput:
    line_items = []
    for _ in range(fake.random_int(min=1, max=5)):
        quantity = fake.random_int(min=1, max=20)
        unit_price = round(fake.random.uniform(10.0, 500.0), 2)
        line_items.append({
            "description": fake.catch_phrase(),
            "quantity": quantity,
            "unit_price": unit_price,
            "total_price": round(quantity * unit_price, 2),
        })

    invoice_date = fake.date_between(start_date="-90d", end_date="today")
    return CreateInvoiceInput(
        invoice_number=f"INV-{invoice_date.year}-{str(number).zfill(4)}",
        vendor=vendor,
        invoice_date=invoice_date,
        due_date=invoice_date + timedelta(days=30),
        total_amount=round(sum(item["total_price"] for item in line_items), 2),
        status=fake.random_element(elements=('pending', 'processed', 'paid', 'overdue')),
        line_items=line_items,
    )


def seed(db: Session, vendor_count: int = 6, invoice_count: int = 20) -> None:
    vendors = [build_vendor() for _ in range(vendor_count)]
    for number in range(1, invoice_count + 1):
        invoice = create_invoice(db, build_invoice(fake.random_element(elements=vendors), number))
        print(f"Created {invoice.invoice_number} for {invoice.vendor.name}: {invoice.total_amount:.2f}")


def main():
    db = SessionLocal()
    try:
        seed(db)
    finally:
        db.close()


if __name__ == "__main__":
    main()
