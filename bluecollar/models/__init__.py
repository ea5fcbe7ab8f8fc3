from .models import *

__all__ = [
    "Base",
    "Role",
    "BookingStatus",
    "PaymentStatus",
    "VerificationStatus",
    "NotificationType",
    "User",
    "ClientProfile",
    "ProviderProfile",
    "Service",
    "ClientAddress",
    "Booking",
    "Payment",
    "Review",
    "Notification",
    "AuditLog",
]
