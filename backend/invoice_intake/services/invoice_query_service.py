"""
Invoice read paths: filtered listing and lookup by id, both returning
invoices hydrated with their vendor and line items.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload, selectinload

from invoice_intake.exceptions import ValidationError
from invoice_intake.models.invoice import Invoice
from invoice_intake.schemas.invoice import InvoiceWithDetails, LineItemResponse
from invoice_intake.schemas.vendor import VendorResponse

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


def hydrate_invoice(invoice: Invoice) -> InvoiceWithDetails:
    """Convert an Invoice row (Decimal columns) into the numeric read model"""
    return InvoiceWithDetails(
        id=invoice.id,
        invoice_number=invoice.invoice_number,
        vendor_id=invoice.vendor_id,
        invoice_date=invoice.invoice_date,
        due_date=invoice.due_date,
        total_amount=float(invoice.total_amount),
        status=invoice.status,
        file_path=invoice.file_path,
        original_filename=invoice.original_filename,
        created_at=invoice.created_at,
        updated_at=invoice.updated_at,
        vendor=VendorResponse.model_validate(invoice.vendor),
        line_items=[
            LineItemResponse(
                id=line.id,
                invoice_id=line.invoice_id,
                description=line.description,
                quantity=float(line.quantity),
                unit_price=float(line.unit_price),
                total_price=float(line.total_price),
                created_at=line.created_at
            )
            for line in invoice.line_items
        ]
    )


def _hydrated_query(db: Session):
    return db.query(Invoice).options(
        joinedload(Invoice.vendor),
        selectinload(Invoice.line_items)
    )


def list_invoices(
    db: Session,
    status: Optional[str] = None,
    vendor_id: Optional[int] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0
) -> List[InvoiceWithDetails]:
    """
    List invoices matching every given filter, newest first.

    Ties on created_at are broken by id so pages never overlap or skip rows.
    """
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    if offset < 0:
        raise ValidationError("offset must not be negative")

    query = _hydrated_query(db)
    if status:
        query = query.filter(Invoice.status == status)
    if vendor_id is not None:
        query = query.filter(Invoice.vendor_id == vendor_id)

    invoices = (
        query.order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return [hydrate_invoice(invoice) for invoice in invoices]


def get_invoice_by_id(db: Session, invoice_id: int) -> Optional[InvoiceWithDetails]:
    """Hydrated invoice, or None when the id does not exist"""
    invoice = _hydrated_query(db).filter(Invoice.id == invoice_id).first()
    if invoice is None:
        return None
    return hydrate_invoice(invoice)
