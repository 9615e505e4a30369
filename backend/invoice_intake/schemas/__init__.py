from invoice_intake.schemas.vendor import VendorResponse, CreateVendorInput
from invoice_intake.schemas.invoice import (
    InvoiceStatus,
    LineItemResponse,
    InvoiceWithDetails,
    CreateLineItemInput,
    CreateInvoiceInput,
    ProposedInvoice,
    UpdateInvoiceInput,
    DeleteInvoiceResponse,
)
from invoice_intake.schemas.upload import UploadInvoiceInput, UploadInvoiceResponse, ExtractInvoiceInput

__all__ = [
    "VendorResponse",
    "CreateVendorInput",
    "InvoiceStatus",
    "LineItemResponse",
    "InvoiceWithDetails",
    "CreateLineItemInput",
    "CreateInvoiceInput",
    "ProposedInvoice",
    "UpdateInvoiceInput",
    "DeleteInvoiceResponse",
    "UploadInvoiceInput",
    "UploadInvoiceResponse",
    "ExtractInvoiceInput",
]
