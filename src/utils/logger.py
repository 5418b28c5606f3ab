"""
Structured logging for the Fusion swap bot.
Supports JSON logging for log aggregation.
"""

import logging
import sys
from typing import Optional
from pythonjsonlogger import jsonlogger

ROOT_LOGGER_NAME = "fusion_swap"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with additional fields."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['timestamp'] = self.formatTime(record, self.datefmt)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    logger_name: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Whether to emit one JSON object per line
        logger_name: Optional specific logger name

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name or ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        formatter = CustomJsonFormatter(
            '%(timestamp)s %(level)s %(name)s %(message)s'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger with the given name."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class SwapLogger:
    """Specialized logger for monitor and swap events."""

    def __init__(self):
        self.logger = get_logger("swaps")

    def monitor_update(
        self,
        stance: str,
        price: float,
        trigger_up: float,
        trigger_down: float,
        triggered: bool,
        target_symbol: str,
        stable_symbol: str
    ):
        """Log one monitor observation."""
        self.logger.info(
            f"Waiting to {stance}, Triggered: {triggered}, "
            f"Current Price: 1 {target_symbol} = {price:f} {stable_symbol}, "
            f"Up: {trigger_up:f} {stable_symbol}, Down: {trigger_down:f} {stable_symbol}",
            extra={
                "event": "monitor_update",
                "stance": stance,
                "price": price,
                "trigger_up": trigger_up,
                "trigger_down": trigger_down,
                "triggered": triggered
            }
        )

    def trigger_fired(self, stance: str, price: float):
        """Log when a band is crossed."""
        self.logger.info(
            "Trigger fired",
            extra={"event": "trigger_fired", "stance": stance, "price": price}
        )

    def order_submitted(
        self,
        order_hash: str,
        from_symbol: str,
        to_symbol: str,
        from_amount: float,
        to_amount: float
    ):
        """Log when the relayer accepts an order."""
        self.logger.info(
            "Order submitted",
            extra={
                "event": "order_submitted",
                "order_hash": order_hash,
                "from_symbol": from_symbol,
                "to_symbol": to_symbol,
                "from_amount": from_amount,
                "to_amount": to_amount
            }
        )

    def order_failed(
        self,
        order_hash: str,
        reason: str,
        error: Optional[str] = None
    ):
        """Log when an order is not submitted."""
        self.logger.error(
            "Order failed",
            extra={
                "event": "order_failed",
                "order_hash": order_hash,
                "reason": reason,
                "error": error
            }
        )

    def balance_recorded(self, symbol: str, balance: str):
        """Log when a new balance is appended to the history."""
        self.logger.info(
            f"{symbol} balance changed",
            extra={"event": "balance_recorded", "symbol": symbol, "balance": balance}
        )
