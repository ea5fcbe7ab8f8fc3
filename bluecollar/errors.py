from fastapi import HTTPException, status

from bluecollar.services.bookings import BookingError, BookingForbidden, BookingNotFound
from bluecollar.services.payment_gateway import PaymentError
from bluecollar.services.payments import PaymentNotFound


def to_http(exc: Exception) -> HTTPException:
    """Map a service-layer exception onto the matching HTTP error."""
    if isinstance(exc, (BookingNotFound, PaymentNotFound)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, BookingForbidden):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, (BookingError, PaymentError)):
        code = status.HTTP_400_BAD_REQUEST
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(exc))
