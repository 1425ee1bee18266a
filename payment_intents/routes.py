import logging

from fastapi import APIRouter, Depends, HTTPException

from payment_intents.auth import verify_token
from payment_intents.dependencies import get_issuer, get_store, get_verifier
from payment_intents.errors import (
    DuplicateReceiptError,
    InvalidAmountError,
    InvalidCurrencyError,
    InvalidStateError,
    NotFoundError,
    PaymentIntentError,
)
from payment_intents.issuer import OrderIssuer
from payment_intents.schemas import (
    CreateOrderRequest,
    OrderView,
    VerificationResult,
    VerifyPaymentRequest,
)
from payment_intents.store import OrderRecordStore
from payment_intents.verifier import SignatureVerifier

logger = logging.getLogger(__name__)

router = APIRouter()

STATUS_CODES = {
    InvalidAmountError: 400,
    InvalidCurrencyError: 400,
    NotFoundError: 404,
    InvalidStateError: 409,
    DuplicateReceiptError: 409,
}


def _rejected(error: PaymentIntentError) -> HTTPException:
    return HTTPException(status_code=STATUS_CODES[type(error)], detail=error.to_dict())


@router.post("/orders", response_model=OrderView, status_code=201)
def create_order_api(
    request: CreateOrderRequest,
    issuer: OrderIssuer = Depends(get_issuer),
    auth=Depends(verify_token)
):
    try:
        return issuer.create_order(request.amount_minor_units, request.currency, receipt=request.receipt)
    except (InvalidAmountError, InvalidCurrencyError) as e:
        logger.info(f"Rejected order request: {e.message}")
        raise _rejected(e)
    except DuplicateReceiptError as e:
        logger.warning(e.message)
        raise _rejected(e)


@router.post("/orders/verify", response_model=VerificationResult)
def verify_payment_api(
    request: VerifyPaymentRequest,
    verifier: SignatureVerifier = Depends(get_verifier),
    auth=Depends(verify_token)
):
    try:
        return verifier.verify(request.order_id, request.payment_id, request.signature)
    except NotFoundError as e:
        logger.warning(f"Verification for unknown order {request.order_id}")
        raise _rejected(e)
    except InvalidStateError as e:
        raise _rejected(e)


@router.get("/orders/{order_id}", response_model=OrderView)
def get_order_api(
    order_id: str,
    store: OrderRecordStore = Depends(get_store),
    auth=Depends(verify_token)
):
    try:
        return OrderView.from_intent(store.get(order_id))
    except NotFoundError as e:
        raise _rejected(e)
