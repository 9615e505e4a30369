"""
Vendor Service - find-or-create for vendor identities

A proposed vendor is the same as a stored one when the names match exactly,
or when both carry an email and the emails match exactly. Stored vendors are
never modified by resolution: the first recorded address/email/phone wins.
"""
import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from invoice_intake.models.vendor import Vendor
from invoice_intake.schemas.vendor import CreateVendorInput

logger = logging.getLogger(__name__)


def find_vendor(db: Session, name: str, email: Optional[str] = None) -> Optional[Vendor]:
    """Lowest-id vendor matching the name, or the email when one is given"""
    predicates = [Vendor.name == name]
    if email:
        predicates.append(Vendor.email == email)
    return db.query(Vendor).filter(or_(*predicates)).order_by(Vendor.id.asc()).first()


def resolve_vendor(db: Session, vendor_input: CreateVendorInput) -> Vendor:
    """
    Return the existing vendor for this identity, creating it when unseen.

    Runs inside the caller's transaction and does not commit. The insert is
    wrapped in a SAVEPOINT: if a concurrent request created the same vendor
    first, the unique constraints on name/email reject ours and the winner
    is returned instead.
    """
    existing = find_vendor(db, vendor_input.name, vendor_input.email)
    if existing:
        logger.info(f"Resolved vendor '{vendor_input.name}' to existing vendor {existing.id} ('{existing.name}')")
        return existing

    new_vendor = Vendor(
        name=vendor_input.name,
        address=vendor_input.address or None,
        email=vendor_input.email or None,
        phone=vendor_input.phone or None,
    )
    try:
        with db.begin_nested():
            db.add(new_vendor)
    except IntegrityError:
        winner = find_vendor(db, vendor_input.name, vendor_input.email)
        if winner is None:
            raise
        logger.info(f"Vendor '{vendor_input.name}' was created concurrently, using vendor {winner.id}")
        return winner

    logger.info(f"Created new vendor: {new_vendor.name} (ID: {new_vendor.id})")
    return new_vendor


def list_vendors(db: Session) -> List[Vendor]:
    """All vendors ordered by name"""
    return db.query(Vendor).order_by(Vendor.name.asc(), Vendor.id.asc()).all()
