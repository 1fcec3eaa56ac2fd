from nautica.integrations.payments.stripe_gateway import (
    CaptureResult,
    CheckoutSession,
    PaymentGateway,
    StripeGateway,
)

__all__ = [
    "CaptureResult",
    "CheckoutSession",
    "PaymentGateway",
    "StripeGateway",
]
