from identity_service.features.payments.models.payment_method import PaymentKind, PaymentMethod

__all__ = ["PaymentKind", "PaymentMethod"]
