from .tenancy import Business, DocumentSequence
from .catalog import Party, Item, PaymentMode
from .documents import Document, LineItem
from .ledger import Transaction
from .operations import Operation, OperationStep

__all__ = [
    'Business', 'DocumentSequence',
    'Party', 'Item', 'PaymentMode',
    'Document', 'LineItem',
    'Transaction',
    'Operation', 'OperationStep',
]
