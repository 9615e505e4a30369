from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from invoice_intake.database import get_db
from invoice_intake.schemas.vendor import VendorResponse
from invoice_intake.services.vendor_service import list_vendors as list_all_vendors

router = APIRouter(prefix="/api/vendors", tags=["vendors"])


@router.get("", response_model=List[VendorResponse])
def list_vendors(db: Session = Depends(get_db)):
    """List all vendors ordered by name"""
    return list_all_vendors(db)
