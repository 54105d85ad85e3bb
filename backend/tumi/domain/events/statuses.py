from enum import Enum

REASON_MOVED = "Event was moved to another person"
REASON_PAYMENT_FAILED = "Payment failed"
REASON_PAYMENT_TIMED_OUT = "Payment intent timed out"
REASON_MOVE_PAYMENT_FAILED = "Payment for move failed"


class RegistrationStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESSFUL = "SUCCESSFUL"
    CANCELLED = "CANCELLED"


class RegistrationType(str, Enum):
    ORGANIZER = "ORGANIZER"
    PARTICIPANT = "PARTICIPANT"
    CALENDAR = "CALENDAR"
