from invoice_intake.models.vendor import Vendor
from invoice_intake.models.invoice import Invoice
from invoice_intake.models.line_item import LineItem

__all__ = ["Vendor", "Invoice", "LineItem"]
