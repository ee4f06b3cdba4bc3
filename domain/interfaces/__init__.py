from .transaction_source import TransactionSource
from .metrics_port import MetricsPort
from .logging_port import LoggingPort, BoundLogger

__all__ = ["TransactionSource", "MetricsPort", "LoggingPort", "BoundLogger"]
