import hashlib
import hmac
import threading
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from payment_intents.database import Base
from payment_intents.errors import InvalidStateError, NotFoundError
from payment_intents.issuer import OrderIssuer
from payment_intents.schemas import OrderIntent, OrderStatus
from payment_intents.store import InMemoryOrderStore, SqlAlchemyOrderStore
from payment_intents.verifier import SignatureVerifier, compute_signature, signing_payload

SECRET = "s3cr3t_key"


@pytest.fixture(params=["memory", "sqlalchemy"])
def store(request, tmp_path):
    if request.param == "memory":
        store = InMemoryOrderStore()
    else:
        engine = create_engine(f"sqlite:///{tmp_path / 'verifier.db'}", connect_args={
                               "check_same_thread": False})
        Base.metadata.create_all(bind=engine)
        store = SqlAlchemyOrderStore(sessionmaker(autocommit=False, autoflush=False, bind=engine))
    store.put(OrderIntent(
        order_id="ord_1",
        amount_minor_units=50000,
        currency="INR",
        created_at=datetime.now(timezone.utc),
    ))
    return store


@pytest.fixture
def verifier(store):
    return SignatureVerifier(store, SECRET)


def test_signature_is_hmac_sha256_over_pipe_delimited_ids():
    expected = hmac.new(SECRET.encode(), b"ord_1|pay_1", hashlib.sha256).hexdigest()

    assert compute_signature(SECRET, "ord_1", "pay_1") == expected
    assert expected == expected.lower()


def test_payload_is_not_trimmed():
    assert signing_payload(" ord_1", "pay_1 ") == b" ord_1|pay_1 "
    assert signing_payload("ord_€", "pay") == "ord_€|pay".encode("utf-8")


def test_payload_keeps_lone_surrogates():
    assert signing_payload("ord_1", "\ud800") == b"ord_1|\xed\xa0\x80"


def test_valid_signature_verifies(store, verifier):
    result = verifier.verify("ord_1", "pay_1", compute_signature(SECRET, "ord_1", "pay_1"))

    assert result.verified
    assert result.status == "success"
    assert store.get("ord_1").status is OrderStatus.VERIFIED
    assert store.get("ord_1").payment_id == "pay_1"


@pytest.mark.parametrize("position", [0, 31, 63])
def test_tampered_signature_fails(store, verifier, position):
    good = compute_signature(SECRET, "ord_1", "pay_1")
    flipped = "0" if good[position] != "0" else "1"
    tampered = good[:position] + flipped + good[position + 1:]

    result = verifier.verify("ord_1", "pay_1", tampered)

    assert not result.verified
    assert result.status == "failure"
    assert store.get("ord_1").status is OrderStatus.FAILED


@pytest.mark.parametrize("claimed", [
    "",
    "not-hex",
    "é" * 64,
    "\ud800",
    "\ud800" * 64,
])
def test_malformed_signature_is_a_normal_failure(store, verifier, claimed):
    result = verifier.verify("ord_1", "pay_1", claimed)

    assert result.status == "failure"
    assert store.get("ord_1").status is OrderStatus.FAILED


def test_uppercase_hex_does_not_match(store, verifier):
    result = verifier.verify("ord_1", "pay_1", compute_signature(SECRET, "ord_1", "pay_1").upper())

    assert result.status == "failure"


def test_signature_for_other_payment_fails(verifier):
    result = verifier.verify("ord_1", "pay_2", compute_signature(SECRET, "ord_1", "pay_1"))

    assert result.status == "failure"


def test_wrong_secret_fails(store):
    result = SignatureVerifier(store, "other").verify("ord_1", "pay_1", compute_signature(SECRET, "ord_1", "pay_1"))

    assert result.status == "failure"


@pytest.mark.parametrize("first_signature_ok", [True, False])
def test_replay_is_rejected_and_status_kept(store, verifier, first_signature_ok):
    good = compute_signature(SECRET, "ord_1", "pay_1")
    verifier.verify("ord_1", "pay_1", good if first_signature_ok else "bad")
    settled = store.get("ord_1")

    with pytest.raises(InvalidStateError):
        verifier.verify("ord_1", "pay_1", good)

    assert store.get("ord_1") == settled


def test_unknown_order(verifier):
    with pytest.raises(NotFoundError):
        verifier.verify("does-not-exist", "x", "y")


def test_empty_secret_rejected(store):
    with pytest.raises(ValueError):
        SignatureVerifier(store, "")


def test_concurrent_verifications_settle_once(store, verifier):
    signature = compute_signature(SECRET, "ord_1", "pay_1")
    barrier = threading.Barrier(8)
    outcomes = []
    lock = threading.Lock()

    def attempt():
        barrier.wait()
        try:
            outcome = verifier.verify("ord_1", "pay_1", signature).status
        except InvalidStateError:
            outcome = "rejected"
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=attempt) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("success") == 1
    assert outcomes.count("rejected") == 7
    assert store.get("ord_1").status is OrderStatus.VERIFIED


def test_issue_then_verify_end_to_end():
    store = InMemoryOrderStore()
    issuer = OrderIssuer(store)
    verifier = SignatureVerifier(store, SECRET)

    order = issuer.create_order(50000, "INR")
    signature = compute_signature(SECRET, order.order_id, "pay_abc")

    assert order.amount_minor_units == 50000
    assert verifier.verify(order.order_id, "pay_abc", signature).status == "success"
    with pytest.raises(InvalidStateError):
        verifier.verify(order.order_id, "pay_abc", signature)
