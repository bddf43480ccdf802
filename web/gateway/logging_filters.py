"""Logging filter adding the current request id to log records.

Attach ``RequestIdFilter`` to handlers in ``LOGGING`` so formatters can
reference ``%(request_id)s``. Outside a request (management commands,
tests calling the service directly) the placeholder ``"-"`` is used.
"""

from logging import Filter, LogRecord

from .middleware import REQUEST_ID_CTX


class RequestIdFilter(Filter):
    def filter(self, record: LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = REQUEST_ID_CTX.get()
        return True
