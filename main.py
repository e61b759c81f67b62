import json
import logging
import datetime
from typing import List, Optional, Union

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

import config
from database import engine, init_db, make_sessionmaker
from errors import BookingError, InternalError, SlotRuleViolation, ValidationError
from service import BookingService
from slots import Slot
from stores import MemoryStore, SQLStore

logging.basicConfig(
    level=config.LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Driving School Booking System")


# Pydantic Schemas for Request/Response
class BookingCreate(BaseModel):
    date: Optional[datetime.date] = None
    hour: Optional[Union[str, int]] = None
    student_name: Optional[str] = None
    permanent: Optional[bool] = False


class BookingDelete(BaseModel):
    date: Optional[datetime.date] = None
    hour: Optional[Union[str, int]] = None
    student_name: Optional[str] = None


class SuspendRequest(BaseModel):
    date: Optional[datetime.date] = None
    slotId: Optional[Union[str, int]] = None
    action: Optional[str] = None


class SlotsResponse(BaseModel):
    success: bool
    message: str
    slots: Optional[List[Slot]] = None


def get_service(request: Request) -> BookingService:
    return request.app.state.service


@app.on_event("startup")
async def on_startup():
    fallback = MemoryStore(config.DATA_FILE)
    primary = None
    if await init_db():
        primary = SQLStore(make_sessionmaker(engine))
    app.state.service = BookingService(primary=primary, fallback=fallback)


@app.on_event("shutdown")
async def on_shutdown():
    if engine is not None:
        await engine.dispose()


# --- Error handlers ---
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"success": False, "message": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    logger.info("Rejected malformed request %s %s: %s", request.method, request.url.path, errors)
    if any(err.get("loc") and err["loc"][-1] == "date" for err in errors):
        message = "Invalid date"
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "message": message})


@app.exception_handler(SlotRuleViolation)
async def slot_rule_handler(request: Request, exc: SlotRuleViolation):
    # Business-rule failures are results, not transport errors
    return JSONResponse(status_code=200, content={"success": False, "message": exc.message})


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    logger.error("Error handling %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"success": False, "message": InternalError.message})


# --- Endpoint 1: GET /admin/daily ---
@app.get("/admin/daily", response_model=List[Slot])
async def get_daily_slots(
    date: Optional[datetime.date] = None,
    service: BookingService = Depends(get_service),
):
    if date is None:
        raise ValidationError("Missing date")
    return await service.daily_slots(date)


# --- Endpoint 2: POST /admin/book ---
@app.post("/admin/book", response_model=SlotsResponse)
async def book_slot(
    booking_data: Optional[BookingCreate] = None,
    service: BookingService = Depends(get_service),
):
    booking_data = booking_data or BookingCreate()
    if booking_data.date is None or booking_data.hour in (None, "") or not booking_data.student_name:
        raise ValidationError("Missing fields")

    logger.info("[INCOMING POST] /admin/book - body: %s", booking_data.model_dump())
    slots = await service.create_booking(
        booking_data.date, booking_data.hour, booking_data.student_name, bool(booking_data.permanent)
    )
    return SlotsResponse(success=True, message="Booking confirmed", slots=slots)


# --- Endpoint 3: DELETE /admin/book ---
@app.delete("/admin/book", response_model=SlotsResponse)
async def delete_booking(
    booking_data: Optional[BookingDelete] = None,
    date: Optional[datetime.date] = None,
    hour: Optional[str] = None,
    student_name: Optional[str] = None,
    service: BookingService = Depends(get_service),
):
    # Some clients strip the body of a DELETE, so query params fill the gaps
    booking_data = booking_data or BookingDelete()
    day = booking_data.date or date
    hour_value = booking_data.hour if booking_data.hour not in (None, "") else hour
    name = booking_data.student_name or student_name

    if day is None or hour_value in (None, "") or not name:
        raise ValidationError("Missing fields for delete")

    slots = await service.delete_booking(day, hour_value, name)
    return SlotsResponse(success=True, message="Deleted booking", slots=slots)


# --- Endpoint 4: POST /admin/suspend ---
@app.post("/admin/suspend", response_model=SlotsResponse)
async def suspend_slot(
    suspend_data: Optional[SuspendRequest] = None,
    service: BookingService = Depends(get_service),
):
    suspend_data = suspend_data or SuspendRequest()
    if suspend_data.date is None or suspend_data.slotId in (None, "") or not suspend_data.action:
        raise ValidationError("Missing fields")

    slots = await service.set_suspension(suspend_data.date, suspend_data.slotId, suspend_data.action)
    message = "Slot suspended" if suspend_data.action == "suspend" else "Slot unsuspended"
    return SlotsResponse(success=True, message=message, slots=slots)


# --- Diagnostics ---
def _header_sizes(request: Request):
    headers = dict(request.headers)
    return len(json.dumps(headers)), len(headers.get("cookie", ""))


@app.get("/health")
async def health(service: BookingService = Depends(get_service)):
    now = datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
    return {"ok": True, "dbConnected": service.db_connected, "now": now}


@app.get("/diagnose-headers")
async def diagnose_headers(request: Request):
    headers_len, cookie_len = _header_sizes(request)
    cookie = request.headers.get("cookie", "")
    return {
        "ok": True,
        "headersLen": headers_len,
        "cookieLen": cookie_len,
        "headersSample": {"cookie": cookie[:500]},
    }


class HeaderInspectMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        headers_len, cookie_len = _header_sizes(request)

        if headers_len > config.MAX_HEADER_BYTES:
            logger.warning(
                "[HEADER-INSPECT] Large headers detected: headers-length=%d cookie-length=%d for %s %s",
                headers_len, cookie_len, request.method, request.url.path,
            )
            return JSONResponse(
                status_code=431,
                content={
                    "error": "Request Header Fields Too Large",
                    "message": "Request headers exceed server limits. Try clearing cookies or using an incognito window.",
                    "headersLen": headers_len,
                    "cookieLen": cookie_len,
                },
            )

        logger.debug(
            "%s %s headers-length=%d cookie-length=%d",
            request.method, request.url.path, headers_len, cookie_len,
        )
        return await call_next(request)


app.add_middleware(HeaderInspectMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=config.PORT)
