"""
Exception hierarchy for the invoice intake service.

Extraction failures are not exceptions: the extraction step returns None when
a document yields no usable data.
"""


class InvoiceIntakeError(Exception):
    """Base class for errors raised by this package"""


class ValidationError(InvoiceIntakeError):
    """Input violates a shape or business constraint"""


class UnsupportedMediaType(ValidationError):
    """Uploaded file has a content type outside the allow-list"""


class PayloadTooLarge(ValidationError):
    """Uploaded file exceeds the configured size limit"""


class StorageError(InvoiceIntakeError):
    """Object storage rejected a read or write"""
