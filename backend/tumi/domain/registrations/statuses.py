from enum import Enum


class RegistrationFormStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


NEXT_STEP_SIGN_IN = "/registration"
NEXT_STEP_FORM = "/registration/form"
