"""Order record store. Callers only ever get immutable copies."""
import logging
import threading
from abc import ABC, abstractmethod
from datetime import timezone
from typing import Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from payment_intents.errors import DuplicateOrderIdError, InvalidTransitionError, NotFoundError
from payment_intents.models import OrderIntentRecord
from payment_intents.schemas import OrderIntent, OrderStatus

logger = logging.getLogger(__name__)


class OrderRecordStore(ABC):

    @abstractmethod
    def put(self, intent: OrderIntent) -> None:
        """Insert a new intent. Raises DuplicateOrderIdError if the id exists."""

    @abstractmethod
    def get(self, order_id: str) -> OrderIntent:
        """Return the stored intent. Raises NotFoundError if absent."""

    @abstractmethod
    def update_status(
        self,
        order_id: str,
        new_status: OrderStatus,
        payment_id: Optional[str] = None
    ) -> OrderIntent:
        """Move a created intent to verified or failed, exactly once."""

    @abstractmethod
    def find_by_receipt(self, receipt: str) -> Optional[OrderIntent]:
        pass


def _check_target(order_id: str, new_status: OrderStatus) -> None:
    if not new_status.is_terminal:
        raise InvalidTransitionError(
            f"Cannot move order {order_id} to non-terminal status {new_status.value}",
            details={"order_id": order_id, "target_status": new_status.value}
        )


def _transition_refused(order_id: str, current: OrderStatus, new_status: OrderStatus) -> InvalidTransitionError:
    return InvalidTransitionError(
        f"Order {order_id} is already {current.value}",
        details={
            "order_id": order_id,
            "current_status": current.value,
            "target_status": new_status.value
        }
    )


class InMemoryOrderStore(OrderRecordStore):
    """Process-local store guarded by a single lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._intents: Dict[str, OrderIntent] = {}

    def put(self, intent: OrderIntent) -> None:
        with self._lock:
            if intent.order_id in self._intents:
                raise DuplicateOrderIdError(
                    f"Order {intent.order_id} already exists",
                    details={"order_id": intent.order_id}
                )
            self._intents[intent.order_id] = intent.model_copy()

    def get(self, order_id: str) -> OrderIntent:
        with self._lock:
            intent = self._intents.get(order_id)
        if intent is None:
            raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
        return intent.model_copy()

    def update_status(
        self,
        order_id: str,
        new_status: OrderStatus,
        payment_id: Optional[str] = None
    ) -> OrderIntent:
        _check_target(order_id, new_status)
        with self._lock:
            current = self._intents.get(order_id)
            if current is None:
                raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
            if current.status is not OrderStatus.CREATED:
                raise _transition_refused(order_id, current.status, new_status)
            updated = current.model_copy(update={"status": new_status, "payment_id": payment_id})
            self._intents[order_id] = updated
        return updated.model_copy()

    def find_by_receipt(self, receipt: str) -> Optional[OrderIntent]:
        with self._lock:
            matches = [i for i in self._intents.values() if i.receipt == receipt]
        if not matches:
            return None
        return min(matches, key=lambda i: i.created_at).model_copy()


def _to_record(intent: OrderIntent) -> OrderIntentRecord:
    created_at = intent.created_at
    if created_at.tzinfo is not None:
        created_at = created_at.astimezone(timezone.utc).replace(tzinfo=None)
    return OrderIntentRecord(
        order_id=intent.order_id,
        amount_minor_units=intent.amount_minor_units,
        currency=intent.currency,
        status=intent.status.value,
        created_at=created_at,
        receipt=intent.receipt,
        payment_id=intent.payment_id,
    )


def _to_intent(record: OrderIntentRecord) -> OrderIntent:
    return OrderIntent(
        order_id=record.order_id,
        amount_minor_units=record.amount_minor_units,
        currency=record.currency,
        status=OrderStatus(record.status),
        created_at=record.created_at.replace(tzinfo=timezone.utc),
        receipt=record.receipt,
        payment_id=record.payment_id,
    )


class SqlAlchemyOrderStore(OrderRecordStore):
    """Session per call; the status change is a single conditional UPDATE."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def put(self, intent: OrderIntent) -> None:
        db = self._session_factory()
        try:
            db.add(_to_record(intent))
            db.commit()
        except IntegrityError:
            db.rollback()
            raise DuplicateOrderIdError(
                f"Order {intent.order_id} already exists",
                details={"order_id": intent.order_id}
            )
        finally:
            db.close()

    def get(self, order_id: str) -> OrderIntent:
        db = self._session_factory()
        try:
            record = db.get(OrderIntentRecord, order_id)
            if record is None:
                raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
            return _to_intent(record)
        finally:
            db.close()

    def update_status(
        self,
        order_id: str,
        new_status: OrderStatus,
        payment_id: Optional[str] = None
    ) -> OrderIntent:
        _check_target(order_id, new_status)
        db = self._session_factory()
        try:
            updated = (
                db.query(OrderIntentRecord)
                .filter(
                    OrderIntentRecord.order_id == order_id,
                    OrderIntentRecord.status == OrderStatus.CREATED.value
                )
                .update(
                    {
                        OrderIntentRecord.status: new_status.value,
                        OrderIntentRecord.payment_id: payment_id
                    },
                    synchronize_session=False
                )
            )
            db.commit()

            record = db.get(OrderIntentRecord, order_id)
            if record is None:
                raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
            if not updated:
                raise _transition_refused(order_id, OrderStatus(record.status), new_status)
            logger.debug(f"Order {order_id} moved to {new_status.value}")
            return _to_intent(record)
        finally:
            db.close()

    def find_by_receipt(self, receipt: str) -> Optional[OrderIntent]:
        db = self._session_factory()
        try:
            record = (
                db.query(OrderIntentRecord)
                .filter_by(receipt=receipt)
                .order_by(OrderIntentRecord.created_at)
                .first()
            )
            return _to_intent(record) if record is not None else None
        finally:
            db.close()
