"""
Invoice write paths: transactional creation, merge-patch update and
cascading delete.

Money is stored as Numeric(10, 2) and quantities as Numeric(10, 3); values
are quantized here, on the way into the database.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from invoice_intake.exceptions import ValidationError
from invoice_intake.models.invoice import Invoice
from invoice_intake.models.line_item import LineItem
from invoice_intake.schemas.invoice import (
    CreateInvoiceInput,
    CreateLineItemInput,
    UpdateInvoiceInput,
    InvoiceWithDetails,
    DeleteInvoiceResponse
)
from invoice_intake.services.invoice_query_service import get_invoice_by_id
from invoice_intake.services.vendor_service import resolve_vendor

logger = logging.getLogger(__name__)

MONEY_EXPONENT = Decimal("0.01")
QUANTITY_EXPONENT = Decimal("0.001")


def to_money(value: float) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_EXPONENT, rounding=ROUND_HALF_UP)


def to_quantity(value: float) -> Decimal:
    return Decimal(str(value)).quantize(QUANTITY_EXPONENT, rounding=ROUND_HALF_UP)


def _build_line_items(invoice_id: int, items: List[CreateLineItemInput]) -> List[LineItem]:
    return [
        LineItem(
            invoice_id=invoice_id,
            description=item.description,
            quantity=to_quantity(item.quantity),
            unit_price=to_money(item.unit_price),
            total_price=to_money(item.total_price)
        )
        for item in items
    ]


def create_invoice(db: Session, data: CreateInvoiceInput) -> InvoiceWithDetails:
    """
    Resolve the vendor, insert the invoice and all of its line items as one
    transaction.

    Raises:
        ValidationError: line_items is empty (checked before any write)
    """
    if not data.line_items:
        raise ValidationError("At least one line item is required")

    try:
        vendor = resolve_vendor(db, data.vendor)

        invoice = Invoice(
            invoice_number=data.invoice_number,
            vendor_id=vendor.id,
            invoice_date=data.invoice_date,
            due_date=data.due_date,
            total_amount=to_money(data.total_amount),
            status=data.status or "pending",
            file_path=data.file_path,
            original_filename=data.original_filename
        )
        db.add(invoice)
        db.flush()  # Get the ID without committing

        db.add_all(_build_line_items(invoice.id, data.line_items))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Invoice creation failed for {data.invoice_number}: {str(e)}")
        raise

    logger.info(
        f"Created invoice {invoice.invoice_number} (ID: {invoice.id}) for vendor {vendor.id} "
        f"with {len(data.line_items)} line item(s)"
    )
    return get_invoice_by_id(db, invoice.id)


def update_invoice(db: Session, invoice_id: int, patch: UpdateInvoiceInput) -> Optional[InvoiceWithDetails]:
    """
    Apply only the fields present in the patch; updated_at is bumped even
    when nothing else changes. Line items are left untouched.

    Returns None when the invoice does not exist.
    """
    invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
    if not invoice:
        return None

    changes = patch.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if field == "total_amount":
            value = to_money(value)
        setattr(invoice, field, value)
    invoice.updated_at = func.now()

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Updated invoice {invoice_id}: {', '.join(changes) or 'no field changes'}")
    return get_invoice_by_id(db, invoice_id)


def delete_invoice(db: Session, invoice_id: int) -> DeleteInvoiceResponse:
    """Delete an invoice and its line items; the vendor is kept"""
    invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
    if not invoice:
        return DeleteInvoiceResponse(success=False, deleted_id=None)

    try:
        db.delete(invoice)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Deleted invoice {invoice_id}")
    return DeleteInvoiceResponse(success=True, deleted_id=invoice_id)
