from models.deal import Deal, Document, Note
from models.tenant import Broker, Vendor

__all__ = [
    "Broker",
    "Vendor",
    "Deal",
    "Note",
    "Document",
]
