from app.container import get_container
from app.core.exchange.service import RequestService
from common.weekdays import DayNames


def get_request_service() -> RequestService:
    return get_container().request_service


def get_day_names() -> DayNames:
    return get_container().day_names
