from enum import Enum


class TripInstanceStatus(str, Enum):
    """Trip instance status enumeration"""

    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    def accepts_bookings(self) -> bool:
        """Only a trip that has not left yet can take new passengers"""
        return self == TripInstanceStatus.SCHEDULED


class BookingStatus(str, Enum):
    """Booking status enumeration"""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"


class UserRole(str, Enum):
    """User role enumeration"""

    GUEST = "GUEST"
    DRIVER = "DRIVER"
    FRONTDESK = "FRONTDESK"
    ADMIN = "ADMIN"
    SUPERADMIN = "SUPERADMIN"

    @classmethod
    def from_string(cls, s: str) -> "UserRole":
        """Parse a role from a string, case-insensitive"""
        s_upper = s.upper().replace("-", "").replace("_", "")
        for role in cls:
            if role.value.replace("_", "") == s_upper:
                return role
        raise ValueError(f'Unknown role: "{s}"')


class CancelledBy(str, Enum):
    """Who released a booking"""

    GUEST = "GUEST"
    DRIVER = "DRIVER"
    FRONTDESK = "FRONTDESK"
    ADMIN = "ADMIN"
    AUTO_CANCEL = "AUTO_CANCEL"

    @classmethod
    def from_role(cls, role: UserRole) -> "CancelledBy":
        if role == UserRole.DRIVER:
            return cls.DRIVER
        if role == UserRole.FRONTDESK:
            return cls.FRONTDESK
        if role in (UserRole.ADMIN, UserRole.SUPERADMIN):
            return cls.ADMIN
        return cls.GUEST


class PaymentMethod(str, Enum):
    APP = "APP"
    FRONTDESK = "FRONTDESK"
    DEPOSIT = "DEPOSIT"
