"""
Engine Logger

DESIGN DECISION: Every significant engine action is logged as a
structured event. This provides:
1. Traceability of what happened to a month
2. Debugging capability
3. One JSON line per event, easy to grep

The logger only writes locally. History beyond the undo window is
deliberately not kept anywhere.
"""

import logging
from typing import Optional
from uuid import UUID

import structlog

from leftover_engine.models.events import EngineEvent, EngineEventBuilder, EngineSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route engine logs to stderr at the given level."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper()))
    logging.getLogger("leftover_engine").setLevel(level.upper())


class EngineLogger:
    """
    Central logging service for the engine.

    Wraps a structlog logger and turns EngineEvents into log lines at the
    level matching their severity.
    """

    def __init__(self, name: str = "leftover_engine"):
        self._logger = structlog.get_logger(name)

    def log(self, event: EngineEvent) -> None:
        log_dict = event.to_log_dict()

        if event.severity == EngineSeverity.ERROR:
            self._logger.error("engine_event", **log_dict)
        elif event.severity == EngineSeverity.WARNING:
            self._logger.warning("engine_event", **log_dict)
        elif event.severity == EngineSeverity.DEBUG:
            self._logger.debug("engine_event", **log_dict)
        else:
            self._logger.info("engine_event", **log_dict)

    def log_month_generated(self, month: str, bills: int, incomes: int) -> None:
        self.log(EngineEventBuilder.month_generated(month, bills, incomes))

    def log_month_deleted(self, month: str) -> None:
        self.log(EngineEventBuilder.month_deleted(month))

    def log_month_lock_toggled(self, month: str, is_read_only: bool) -> None:
        self.log(EngineEventBuilder.month_lock_toggled(month, is_read_only))

    def log_instance_updated(
        self,
        entity_type: str,
        instance_id: UUID,
        month: str,
        changes: dict,
    ) -> None:
        self.log(EngineEventBuilder.instance_updated(entity_type, instance_id, month, changes))

    def log_expense_changed(
        self,
        entity_type: str,
        expense_id: UUID,
        month: str,
        action: str,
    ) -> None:
        self.log(EngineEventBuilder.expense_changed(entity_type, expense_id, month, action))

    def log_balance_updated(self, month: str, source_id: UUID, balance: int) -> None:
        self.log(EngineEventBuilder.balance_updated(month, source_id, balance))

    def log_template_changed(self, entity_type: str, entity_id: UUID, action: str) -> None:
        self.log(EngineEventBuilder.template_changed(entity_type, entity_id, action))

    def log_undo_pushed(self, entity_type: str, entity_id: UUID, depth: int) -> None:
        self.log(EngineEventBuilder.undo_pushed(entity_type, entity_id, depth))

    def log_undo_applied(self, entity_type: str, entity_id: UUID, depth: int) -> None:
        self.log(EngineEventBuilder.undo_applied(entity_type, entity_id, depth))

    def log_undo_empty(self) -> None:
        self.log(EngineEventBuilder.undo_empty())

    def log_storage_write_failed(self, target: str, error_message: str) -> None:
        self.log(EngineEventBuilder.storage_write_failed(target, error_message))

    def log_storage_flushed(self, written: int) -> None:
        self.log(EngineEventBuilder.storage_flushed(written))

    def log_validation_failed(self, field: Optional[str], message: str) -> None:
        self.log(EngineEventBuilder.validation_failed(field, message))
