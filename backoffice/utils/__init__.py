from .helpers import (
    to_document,
    from_document,
    dump_record,
    success_response,
    error_response,
)
from .logger import Logger

__all__ = [
    "to_document",
    "from_document",
    "dump_record",
    "success_response",
    "error_response",
    "Logger",
]
