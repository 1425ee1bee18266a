import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from payment_intents.config import settings
from payment_intents.database import Base, engine
from payment_intents.routes import router
import payment_intents.models  # noqa: F401  registers order_intents on Base

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Payment Intent Verification Service")

app.include_router(router)

Base.metadata.create_all(bind=engine)


def _printable(part):
    # Unknown JSON keys show up in loc as-is
    if isinstance(part, str):
        return part.encode("utf-8", errors="replace").decode("utf-8")
    return part


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Raw input is not echoed back; it may not even be encodable as UTF-8
    errors = [
        {"type": error["type"], "loc": [_printable(part) for part in error["loc"]], "msg": error["msg"]}
        for error in exc.errors()
    ]
    logger.info(f"Rejected malformed request to {request.url.path}: {len(errors)} error(s)")
    return JSONResponse(status_code=422, content=jsonable_encoder({"detail": errors}))
