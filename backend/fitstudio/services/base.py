# backend/fitstudio/services/base.py
"""
Shared plumbing for FitStudio services.

Each service owns one SQLAlchemy session, commits through ``transaction()``
and reports per-operation latency to Prometheus via ``measure_operation``.
Role checks live here so every service rejects callers the same way.
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import ForbiddenException, ServiceException
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import Principal

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    """Base class for the booking and class session services."""

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit on clean exit, roll back on any error.

        Database errors surface as ServiceException; domain errors raised in
        the block propagate unchanged after the rollback.
        """
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger.error(f"Transaction rolled back: {str(e)}")
            raise ServiceException(f"Database operation failed: {str(e)}")
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """Record duration and outcome of a service method under ``operation_name``."""

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self, *args, **kwargs):
                started = time.perf_counter()
                error_type: Optional[str] = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - started
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(
                            f"Slow operation: {operation_name} took {elapsed:.2f}s",
                            extra={"operation": operation_name, "duration_s": elapsed},
                        )
                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="error" if error_type else "success",
                        error_type=error_type,
                    )

            return cast(F, wrapper)

        return decorator

    @staticmethod
    def require_staff(principal: Principal) -> None:
        if not principal.is_staff:
            raise ForbiddenException("Staff access required")

    @staticmethod
    def require_scheduler(principal: Principal) -> None:
        if not principal.can_schedule:
            raise ForbiddenException("Only owners, admins and managers can manage the schedule")

    @staticmethod
    def require_class_runner(principal: Principal) -> None:
        if not principal.can_run_classes:
            raise ForbiddenException("Only instructors and managers can run classes")
