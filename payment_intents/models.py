from sqlalchemy import Column, String, Integer, DateTime, CheckConstraint
from payment_intents.database import Base


class OrderIntentRecord(Base):
    __tablename__ = "order_intents"

    order_id = Column(String, primary_key=True)        # ord_* or provider-assigned id
    amount_minor_units = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String, nullable=False, index=True)  # created | verified | failed
    created_at = Column(DateTime, nullable=False)       # naive UTC
    receipt = Column(String, index=True)
    payment_id = Column(String)

    __table_args__ = (
        CheckConstraint("status IN ('created', 'verified', 'failed')", name="order_status_check"),
        CheckConstraint("amount_minor_units > 0", name="order_amount_positive"),
    )
