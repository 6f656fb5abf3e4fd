"""API module - request execution, error translation and booking endpoints."""

from .booking import BookingApi, extract_booking, extract_record_locator
from .executor import ApiResponse, RequestExecutor
from .translator import translate

__all__ = [
    "ApiResponse",
    "BookingApi",
    "RequestExecutor",
    "extract_booking",
    "extract_record_locator",
    "translate",
]
