from typing import NamedTuple, Optional

import stripe


class ProviderOrder(NamedTuple):
    order_id: str
    client_secret: Optional[str] = None


class StripeOrderProvider:
    """Creates the provider-side order as a Stripe PaymentIntent."""

    def __init__(self, api_key: str):
        self._api_key = api_key

    def create_order(self, amount_minor_units: int, currency: str, receipt: str) -> ProviderOrder:
        intent = stripe.PaymentIntent.create(
            api_key=self._api_key,
            amount=amount_minor_units,
            currency=currency.lower(),
            automatic_payment_methods={"enabled": True},
            metadata={"receipt": receipt},
            idempotency_key=receipt
        )
        return ProviderOrder(order_id=intent.id, client_secret=intent.client_secret)
