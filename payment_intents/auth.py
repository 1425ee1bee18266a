import logging

from fastapi import Depends, Header, HTTPException
from jose import JWTError, jwt

from payment_intents.config import Settings
from payment_intents.dependencies import get_settings

logger = logging.getLogger(__name__)


def verify_token(
    authorization: str = Header(...),
    settings: Settings = Depends(get_settings)
):
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer" or not settings.jwt_secret:
            raise ValueError("unsupported authorization")
        return jwt.decode(token, settings.jwt_secret, algorithms=["HS256"])
    except (ValueError, JWTError):
        logger.warning("Rejected request with invalid bearer token")
        raise HTTPException(status_code=401, detail="Invalid or missing token")
