"""
Structured logging for nawi.

JSON logs with timestamp, event_type and per-event fields, written to stderr
so the report and CBOR payload on stdout stay clean.
"""

from nawi.nawi_logging.logger import bind_transaction, configure_logging, get_logger

__all__ = ["bind_transaction", "configure_logging", "get_logger"]
