from enum import Enum


class MemberStatus(str, Enum):
    NONE = "NONE"
    TRIAL = "TRIAL"
    FULL = "FULL"
    SPONSOR = "SPONSOR"
    ALUMNI = "ALUMNI"


class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"
