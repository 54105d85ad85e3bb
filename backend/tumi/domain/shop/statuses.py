from enum import Enum


class PurchaseStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    SENT = "SENT"
    CANCELLED = "CANCELLED"
