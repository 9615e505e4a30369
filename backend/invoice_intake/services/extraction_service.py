"""
Extraction Service - turns a raw extractor payload into a ProposedInvoice

Rules:
- invoice_number, vendor_name, invoice_date, total_amount and a non-empty
  line_items list are required; any failure rejects the whole payload.
- One invalid line item rejects the whole payload.
- An unparsable due_date or vendor email is dropped, the rest is kept.
- status is always "pending".

Rejection is reported as None so callers can ask the user to retry or enter
the invoice manually.
"""
import logging
import math
import os
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from invoice_intake.schemas.invoice import ProposedInvoice
from invoice_intake.schemas.vendor import validate_email
from invoice_intake.services.ocr_service import get_extractor

logger = logging.getLogger(__name__)

DATE_FORMATS = [
    '%Y-%m-%d',  # YYYY-MM-DD
    '%Y/%m/%d',  # YYYY/MM/DD
    '%m/%d/%Y',  # MM/DD/YYYY (US format, wins over DD/MM/YYYY when ambiguous)
    '%d/%m/%Y',  # DD/MM/YYYY (European format)
    '%m-%d-%Y',  # MM-DD-YYYY
    '%d-%m-%Y',  # DD-MM-YYYY
    '%d.%m.%Y',  # DD.MM.YYYY
]


def parse_date(value: Any) -> Optional[date]:
    """Parse a candidate date, returning None when it is not a recognizable date"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    date_str = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(date_str, fmt).date()
        except ValueError:
            continue

    # ISO timestamps such as "2024-01-15T00:00:00Z"
    try:
        return datetime.fromisoformat(date_str.replace('Z', '+00:00')).date()
    except ValueError:
        return None


def parse_amount(value: Any) -> Optional[float]:
    """Parse a number or a numeric string with currency symbols and separators"""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        raw = value
    elif isinstance(value, str):
        raw = value.replace("$", "").replace(",", "").replace("€", "").replace("£", "").strip()
    else:
        return None
    try:
        amount = float(raw)
    except (ValueError, OverflowError):
        return None
    # "inf" and "nan" parse as floats but are not amounts
    return amount if math.isfinite(amount) else None


def _non_empty_string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _parse_email(value: Any) -> Optional[str]:
    email = _non_empty_string(value)
    if email is None:
        return None
    try:
        return validate_email(email)
    except ValueError:
        logger.warning(f"Dropping unparsable vendor email: {email!r}")
        return None


def _normalize_line_items(raw_items: Any) -> Optional[List[Dict]]:
    if not isinstance(raw_items, list) or not raw_items:
        return None

    normalized = []
    for idx, item in enumerate(raw_items, start=1):
        if not isinstance(item, dict):
            logger.info(f"Line item {idx} is not an object")
            return None
        description = _non_empty_string(item.get("description"))
        quantity = parse_amount(item.get("quantity"))
        unit_price = parse_amount(item.get("unit_price"))
        total_price = parse_amount(item.get("total_price"))
        if description is None or any(v is None or v <= 0 for v in (quantity, unit_price, total_price)):
            logger.info(f"Line item {idx} is invalid: {item}")
            return None
        normalized.append({
            "description": description,
            "quantity": quantity,
            "unit_price": unit_price,
            "total_price": total_price,
        })
    return normalized


def normalize_candidate(payload: Any, file_path: str) -> Optional[ProposedInvoice]:
    """
    Validate a raw candidate payload and map it onto ProposedInvoice

    Args:
        payload: Whatever the extractor returned
        file_path: Storage key of the source document

    Returns:
        ProposedInvoice, or None when the payload is unusable
    """
    if not isinstance(payload, dict):
        logger.info("Extraction payload is not an object")
        return None

    invoice_number = _non_empty_string(payload.get("invoice_number"))
    vendor_name = _non_empty_string(payload.get("vendor_name"))
    invoice_date = parse_date(payload.get("invoice_date"))
    total_amount = parse_amount(payload.get("total_amount"))
    line_items = _normalize_line_items(payload.get("line_items"))

    missing = [
        name for name, value in (
            ("invoice_number", invoice_number),
            ("vendor_name", vendor_name),
            ("invoice_date", invoice_date),
            ("total_amount", total_amount),
            ("line_items", line_items),
        ) if value is None
    ]
    if missing:
        logger.info(f"Extraction payload rejected, invalid or missing: {', '.join(missing)}")
        return None

    due_date = None
    if payload.get("due_date") is not None:
        due_date = parse_date(payload.get("due_date"))
        if due_date is None:
            logger.warning(f"Dropping unparsable due_date: {payload.get('due_date')!r}")

    try:
        return ProposedInvoice(
            invoice_number=invoice_number,
            vendor={
                "name": vendor_name,
                "address": _non_empty_string(payload.get("vendor_address")),
                "email": _parse_email(payload.get("vendor_email")),
                "phone": _non_empty_string(payload.get("vendor_phone")),
            },
            invoice_date=invoice_date,
            due_date=due_date,
            total_amount=total_amount,
            status="pending",
            file_path=file_path,
            original_filename=os.path.basename(file_path),
            line_items=line_items,
        )
    except PydanticValidationError as e:
        logger.info(f"Extraction payload rejected: {e.error_count()} validation error(s)")
        return None


class ExtractionService:
    """Runs the configured extractor and normalizes what it returns"""

    def __init__(self, extractor=None):
        self._extractor = extractor

    @property
    def extractor(self):
        if self._extractor is None:
            self._extractor = get_extractor()
        return self._extractor

    async def extract(self, file_path: str, filename: Optional[str] = None) -> Optional[ProposedInvoice]:
        logger.info(f"Starting extraction for {filename or file_path} ({file_path})")
        payload = await self.extractor.extract(file_path)
        if payload is None:
            logger.info(f"Extractor returned no data for {file_path}")
            return None

        proposed = normalize_candidate(payload, file_path)
        if proposed is not None:
            logger.info(
                f"Extracted invoice {proposed.invoice_number} from {proposed.vendor.name} "
                f"with {len(proposed.line_items)} line item(s)"
            )
        return proposed


extraction_service = ExtractionService()
