from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Literal
from datetime import date, datetime
from invoice_intake.schemas.vendor import VendorResponse, CreateVendorInput

InvoiceStatus = Literal["pending", "processed", "paid", "overdue"]

# Largest values that fit Numeric(10, 2) money and Numeric(10, 3) quantity columns
MAX_MONEY = 99_999_999.99
MAX_QUANTITY = 9_999_999.999


class LineItemResponse(BaseModel):
    id: int
    invoice_id: int
    description: str
    quantity: float
    unit_price: float
    total_price: float
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceWithDetails(BaseModel):
    """Invoice joined with its vendor and every line item"""
    id: int
    invoice_number: str
    vendor_id: int
    invoice_date: date
    due_date: Optional[date]
    total_amount: float
    status: InvoiceStatus
    file_path: Optional[str]
    original_filename: Optional[str]
    created_at: datetime
    updated_at: datetime
    vendor: VendorResponse
    line_items: List[LineItemResponse] = []

    class Config:
        from_attributes = True


class CreateLineItemInput(BaseModel):
    description: str = Field(..., min_length=1)
    quantity: float = Field(..., gt=0, le=MAX_QUANTITY, allow_inf_nan=False)
    unit_price: float = Field(..., gt=0, le=MAX_MONEY, allow_inf_nan=False)
    # Trusted as supplied, never recomputed from quantity * unit_price
    total_price: float = Field(..., gt=0, le=MAX_MONEY, allow_inf_nan=False)


class CreateInvoiceInput(BaseModel):
    invoice_number: str = Field(..., min_length=1)
    vendor: CreateVendorInput
    invoice_date: date
    due_date: Optional[date] = None
    total_amount: float = Field(..., gt=0, le=MAX_MONEY, allow_inf_nan=False)
    status: InvoiceStatus = "pending"
    file_path: Optional[str] = None
    original_filename: Optional[str] = None
    # Emptiness is rejected by the create service before anything is written
    line_items: List[CreateLineItemInput]


# Output of the extraction step, ready to be confirmed and created as-is
ProposedInvoice = CreateInvoiceInput


class UpdateInvoiceInput(BaseModel):
    """Merge-patch: only fields present in the request are applied"""
    invoice_number: Optional[str] = Field(None, min_length=1)
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    total_amount: Optional[float] = Field(None, gt=0, le=MAX_MONEY, allow_inf_nan=False)
    status: Optional[InvoiceStatus] = None

    @model_validator(mode="after")
    def _reject_null_for_required_columns(self):
        # due_date is the only column that may be cleared
        for field in ("invoice_number", "invoice_date", "total_amount", "status"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


class DeleteInvoiceResponse(BaseModel):
    success: bool
    deleted_id: Optional[int] = None
