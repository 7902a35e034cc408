from fastapi import status

from identity_service.platform.exceptions import AppError


class PaymentMethodNotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "PAYMENT_METHOD_NOT_FOUND"
    message = "Payment method not found"


class PaymentMethodMismatchError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "PAYMENT_METHOD_MISMATCH"
    message = "Payment method kind cannot be changed; create a new payment method instead"
