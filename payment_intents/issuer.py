"""
Order issuance.

Validates the requested amount and currency, mints an order id (or adopts
the payment provider's), stores a ``created`` intent and returns the public
view the checkout client needs.
"""
import logging
import secrets
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from payment_intents.errors import (
    DuplicateOrderIdError,
    DuplicateReceiptError,
    InvalidAmountError,
    InvalidCurrencyError,
)
from payment_intents.schemas import OrderIntent, OrderStatus, OrderView
from payment_intents.store import OrderRecordStore
from payment_intents.stripe_service import ProviderOrder

logger = logging.getLogger(__name__)


# Active ISO 4217 alphabetic codes
ISO_4217_CODES = frozenset("""
    AED AFN ALL AMD ANG AOA ARS AUD AWG AZN BAM BBD BDT BGN BHD BIF BMD BND
    BOB BRL BSD BTN BWP BYN BZD CAD CDF CHF CLP CNY COP CRC CUP CVE CZK DJF
    DKK DOP DZD EGP ERN ETB EUR FJD FKP GBP GEL GHS GIP GMD GNF GTQ GYD HKD
    HNL HTG HUF IDR ILS INR IQD IRR ISK JMD JOD JPY KES KGS KHR KMF KPW KRW
    KWD KYD KZT LAK LBP LKR LRD LSL LYD MAD MDL MGA MKD MMK MNT MOP MRU MUR
    MVR MWK MXN MYR MZN NAD NGN NIO NOK NPR NZD OMR PAB PEN PGK PHP PKR PLN
    PYG QAR RON RSD RUB RWF SAR SBD SCR SDG SEK SGD SHP SLE SOS SRD SSP STN
    SVC SYP SZL THB TJS TMT TND TOP TRY TTD TWD TZS UAH UGX USD UYU UZS VES
    VND VUV WST XAF XCD XCG XOF XPF YER ZAR ZMW ZWG
""".split())


class OrderProvider(Protocol):
    def create_order(self, amount_minor_units: int, currency: str, receipt: str) -> ProviderOrder:
        ...


def new_order_id() -> str:
    """128 random bits, urlsafe-base64 encoded."""
    return f"ord_{secrets.token_urlsafe(16)}"


def validate_amount(amount_minor_units) -> int:
    # bool is an int subclass; True is not an amount
    if not isinstance(amount_minor_units, int) or isinstance(amount_minor_units, bool):
        raise InvalidAmountError(
            "Amount must be an integer number of minor units",
            details={"amount_minor_units": repr(amount_minor_units)}
        )
    if amount_minor_units <= 0:
        raise InvalidAmountError(
            "Amount must be greater than zero",
            details={"amount_minor_units": amount_minor_units}
        )
    return amount_minor_units


def normalize_currency(currency) -> str:
    code = currency.upper() if isinstance(currency, str) else None
    if code not in ISO_4217_CODES:
        raise InvalidCurrencyError(
            f"Unsupported currency: {currency!r}",
            details={"currency": repr(currency)}
        )
    return code


class OrderIssuer:
    """
    Creates order intents against a store.

    Args:
        store: Where intents are persisted
        provider: Optional payment provider; when given, its order id is
            adopted as the intent's ``order_id`` so the checkout flow and the
            verifier agree on the signed value
        id_factory: Generates local order/receipt ids
        max_attempts: Inserts tried before a duplicate id is treated as fatal
    """

    def __init__(
        self,
        store: OrderRecordStore,
        provider: Optional[OrderProvider] = None,
        id_factory: Callable[[], str] = new_order_id,
        max_attempts: int = 3
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._store = store
        self._provider = provider
        self._id_factory = id_factory
        self._max_attempts = max_attempts

    def create_order(self, amount_minor_units: int, currency: str, receipt: Optional[str] = None) -> OrderView:
        """
        Issue an order, or return the one already issued for ``receipt``.

        A repeated receipt with the same amount and currency is answered with
        the stored order and no provider call. Reusing it for a different
        amount or currency raises DuplicateReceiptError.
        """
        amount_minor_units = validate_amount(amount_minor_units)
        currency = normalize_currency(currency)

        if receipt:
            existing = self._store.find_by_receipt(receipt)
            if existing is not None:
                return self._reissue(existing, amount_minor_units, currency)

        for attempt in range(1, self._max_attempts + 1):
            local_id = self._id_factory()
            order_receipt = receipt or local_id
            client_secret = None

            # Provider call happens before the store is touched
            if self._provider is not None:
                provider_order = self._provider.create_order(amount_minor_units, currency, order_receipt)
                order_id = provider_order.order_id
                client_secret = provider_order.client_secret
            else:
                order_id = local_id

            intent = OrderIntent(
                order_id=order_id,
                amount_minor_units=amount_minor_units,
                currency=currency,
                status=OrderStatus.CREATED,
                created_at=datetime.now(timezone.utc),
                receipt=order_receipt,
            )

            try:
                self._store.put(intent)
            except DuplicateOrderIdError:
                if receipt:
                    # A concurrent request with the same receipt got the same provider order
                    existing = self._store.find_by_receipt(receipt)
                    if existing is not None:
                        return self._reissue(existing, amount_minor_units, currency, client_secret)
                logger.error(f"Duplicate order id {order_id} on attempt {attempt}/{self._max_attempts}")
                if attempt == self._max_attempts:
                    raise
                continue

            logger.info(f"Issued order {order_id}: {amount_minor_units} {currency}")
            return OrderView.from_intent(intent, client_secret=client_secret)

    def _reissue(
        self,
        existing: OrderIntent,
        amount_minor_units: int,
        currency: str,
        client_secret: Optional[str] = None
    ) -> OrderView:
        if (existing.amount_minor_units, existing.currency) != (amount_minor_units, currency):
            raise DuplicateReceiptError(
                f"Receipt {existing.receipt} already issued as order {existing.order_id}",
                details={"receipt": existing.receipt, "order_id": existing.order_id}
            )
        logger.info(f"Receipt {existing.receipt} already issued as order {existing.order_id}")
        return OrderView.from_intent(existing, client_secret=client_secret)
