"""
FastAPI dependency providers.

Everything the core needs is built here from explicit settings; tests swap
any of these through ``app.dependency_overrides``.
"""
from typing import Optional

from fastapi import Depends

from payment_intents.config import Settings, settings as env_settings
from payment_intents.database import SessionLocal
from payment_intents.issuer import OrderIssuer
from payment_intents.store import OrderRecordStore, SqlAlchemyOrderStore
from payment_intents.stripe_service import StripeOrderProvider
from payment_intents.verifier import SignatureVerifier


def get_settings() -> Settings:
    return env_settings


def get_store() -> OrderRecordStore:
    return SqlAlchemyOrderStore(SessionLocal)


def get_provider(settings: Settings = Depends(get_settings)) -> Optional[StripeOrderProvider]:
    if not settings.stripe_secret_key:
        return None
    return StripeOrderProvider(settings.stripe_secret_key)


def get_issuer(
    store: OrderRecordStore = Depends(get_store),
    provider: Optional[StripeOrderProvider] = Depends(get_provider)
) -> OrderIssuer:
    return OrderIssuer(store, provider=provider)


def get_verifier(
    store: OrderRecordStore = Depends(get_store),
    settings: Settings = Depends(get_settings)
) -> SignatureVerifier:
    if not settings.payment_signing_secret:
        raise RuntimeError("PAYMENT_SIGNING_SECRET is not set. Check your .env file.")
    return SignatureVerifier(store, settings.payment_signing_secret)
