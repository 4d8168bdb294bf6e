# subscriptions/exceptions.py


class InvoiceAllocationError(Exception):
    """Raised when an invoice could not be issued inside an approval."""
    pass
