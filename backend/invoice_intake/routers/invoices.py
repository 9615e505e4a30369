from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import base64
import binascii
import logging

from invoice_intake.database import get_db
from invoice_intake.exceptions import ValidationError
from invoice_intake.schemas.invoice import (
    InvoiceStatus,
    InvoiceWithDetails,
    CreateInvoiceInput,
    UpdateInvoiceInput,
    DeleteInvoiceResponse,
    ProposedInvoice
)
from invoice_intake.schemas.upload import UploadInvoiceInput, UploadInvoiceResponse, ExtractInvoiceInput
from invoice_intake.services import invoice_service, invoice_query_service
from invoice_intake.services.extraction_service import extraction_service
from invoice_intake.services.storage_service import storage_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/invoices", tags=["invoices"])


@router.post("/upload", response_model=UploadInvoiceResponse)
def upload_invoice(payload: UploadInvoiceInput):
    """Store a base64-encoded invoice file (PDF or image)"""
    try:
        file_content = base64.b64decode(payload.file_data, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("file_data is not valid base64")

    file_path = storage_service.upload_file(file_content, payload.filename, payload.content_type)
    return UploadInvoiceResponse(file_path=file_path, success=True)


@router.post("/upload-file", response_model=UploadInvoiceResponse)
async def upload_invoice_file(file: UploadFile = File(...)):
    """Store a multipart-uploaded invoice file (PDF or image)"""
    # One byte past the limit is enough for upload_file to reject it
    file_content = await file.read(storage_service.max_upload_bytes + 1)
    file_path = storage_service.upload_file(
        file_content,
        file.filename or "invoice",
        file.content_type or "application/octet-stream"
    )
    return UploadInvoiceResponse(file_path=file_path, success=True)


@router.post("/extract", response_model=Optional[ProposedInvoice])
async def extract_invoice(payload: ExtractInvoiceInput):
    """Propose invoice fields for a stored file; null means enter them manually"""
    return await extraction_service.extract(payload.file_path, payload.filename)


@router.post("", response_model=InvoiceWithDetails)
def create_invoice(payload: CreateInvoiceInput, db: Session = Depends(get_db)):
    """Create a confirmed invoice with its vendor and line items"""
    return invoice_service.create_invoice(db, payload)


@router.get("", response_model=List[InvoiceWithDetails])
def list_invoices(
    status: Optional[InvoiceStatus] = Query(None, description="Filter by status"),
    vendor_id: Optional[int] = Query(None, description="Filter by vendor ID"),
    limit: int = Query(invoice_query_service.DEFAULT_PAGE_SIZE, ge=1, le=invoice_query_service.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    """List invoices with optional filters"""
    return invoice_query_service.list_invoices(db, status=status, vendor_id=vendor_id, limit=limit, offset=offset)


@router.get("/{invoice_id}", response_model=InvoiceWithDetails)
def get_invoice(invoice_id: int, db: Session = Depends(get_db)):
    """Get invoice detail with vendor and line items"""
    invoice = invoice_query_service.get_invoice_by_id(db, invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


@router.patch("/{invoice_id}", response_model=InvoiceWithDetails)
def update_invoice(invoice_id: int, patch: UpdateInvoiceInput, db: Session = Depends(get_db)):
    """Partially update an invoice"""
    invoice = invoice_service.update_invoice(db, invoice_id, patch)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


@router.delete("/{invoice_id}", response_model=DeleteInvoiceResponse)
def delete_invoice(invoice_id: int, db: Session = Depends(get_db)):
    """Delete an invoice and its line items"""
    return invoice_service.delete_invoice(db, invoice_id)
