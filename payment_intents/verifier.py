"""
Signature verification for payment completions.

The checkout flow hands back ``(order_id, payment_id, signature)``. The
signature is HMAC-SHA256 over ``order_id|payment_id`` keyed with the shared
secret, hex-encoded in lower case. Verification is bound to the stored order
state: an order is verified or failed exactly once, and every later attempt
is rejected as a replay.
"""
import hashlib
import hmac
import logging

from payment_intents.errors import InvalidStateError, InvalidTransitionError
from payment_intents.schemas import OrderStatus, VerificationResult
from payment_intents.store import OrderRecordStore

logger = logging.getLogger(__name__)


def signing_payload(order_id: str, payment_id: str) -> bytes:
    """Canonical message: pipe-delimited, untrimmed, UTF-8 (lone surrogates passed through)."""
    return f"{order_id}|{payment_id}".encode("utf-8", errors="surrogatepass")


def compute_signature(secret_key: str, order_id: str, payment_id: str) -> str:
    """Return the lower-case hex HMAC-SHA256 expected for a completion."""
    return hmac.new(
        secret_key.encode("utf-8"),
        signing_payload(order_id, payment_id),
        hashlib.sha256
    ).hexdigest()


class SignatureVerifier:
    """Checks completion signatures against stored order intents."""

    def __init__(self, store: OrderRecordStore, secret_key: str):
        if not secret_key:
            raise ValueError("secret_key must be a non-empty string")
        self._store = store
        self._secret_key = secret_key

    def verify(self, order_id: str, payment_id: str, claimed_signature: str) -> VerificationResult:
        """
        Verify a payment completion and record the outcome.

        Returns:
            VerificationResult with status "success" (order now verified) or
            "failure" (order now failed)

        Raises:
            NotFoundError: order_id is unknown
            InvalidStateError: the order was already verified or failed
        """
        intent = self._store.get(order_id)

        if intent.status is not OrderStatus.CREATED:
            logger.warning(
                f"Rejected verification for order {order_id} in state {intent.status.value} "
                f"(possible replay)"
            )
            raise InvalidStateError(
                f"Order {order_id} is already {intent.status.value}",
                details={"order_id": order_id, "status": intent.status.value}
            )

        expected = compute_signature(self._secret_key, order_id, payment_id)

        # Constant-time comparison
        matched = hmac.compare_digest(
            expected.encode("ascii"),
            claimed_signature.encode("utf-8", errors="surrogatepass")
        )
        new_status = OrderStatus.VERIFIED if matched else OrderStatus.FAILED

        try:
            self._store.update_status(order_id, new_status, payment_id=payment_id)
        except InvalidTransitionError as e:
            # Lost a race with a concurrent verification of the same order
            logger.warning(f"Concurrent verification of order {order_id} rejected (possible replay)")
            raise InvalidStateError(
                f"Order {order_id} was settled concurrently",
                details={"order_id": order_id, **e.details}
            ) from e

        if matched:
            logger.info(f"Payment {payment_id} verified for order {order_id}")
            return VerificationResult(order_id=order_id, status="success")

        logger.info(f"Signature mismatch for order {order_id}; marked failed")
        return VerificationResult(order_id=order_id, status="failure")
