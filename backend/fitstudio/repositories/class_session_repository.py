# backend/fitstudio/repositories/class_session_repository.py
"""
Class session data access.

``get_for_update`` is the entry point of every mutation on a session's
counters: it takes the row lock and refreshes the identity-map copy so the
caller never acts on a stale ``spots_booked``.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..database.session_utils import supports_row_locks
from ..models.class_session import ClassSession, ClassSessionStatus
from .base_repository import BaseRepository

# Sessions that still occupy their instructor.
_LIVE_STATUSES = (ClassSessionStatus.SCHEDULED.value, ClassSessionStatus.IN_PROGRESS.value)


class ClassSessionRepository(BaseRepository[ClassSession]):
    def __init__(self, db: Session):
        super().__init__(db, ClassSession)

    def get_for_update(self, class_session_id: str, tenant_id: str) -> Optional[ClassSession]:
        """Load a tenant's session with SELECT ... FOR UPDATE where the dialect has row locks."""
        try:
            query = self.db.query(ClassSession).filter(
                ClassSession.id == class_session_id,
                ClassSession.tenant_id == tenant_id,
            )
            if supports_row_locks(self.db):
                query = query.with_for_update()
            return query.populate_existing().first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking class session {class_session_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock class session: {str(e)}")

    def list_for_tenant(
        self,
        tenant_id: str,
        *,
        status: Optional[str] = None,
        starts_after: Optional[datetime] = None,
        starts_before: Optional[datetime] = None,
        location_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[ClassSession]:
        try:
            query = self.db.query(ClassSession).filter(ClassSession.tenant_id == tenant_id)
            if status:
                query = query.filter(ClassSession.status == status)
            if starts_after:
                query = query.filter(ClassSession.start_time >= starts_after)
            if starts_before:
                query = query.filter(ClassSession.start_time < starts_before)
            if location_id:
                query = query.filter(ClassSession.location_id == location_id)
            return (
                query.order_by(ClassSession.start_time.asc(), ClassSession.id.asc())
                .offset(offset)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing class sessions: {str(e)}")
            raise RepositoryException(f"Failed to list class sessions: {str(e)}")

    def find_instructor_conflict(
        self,
        tenant_id: str,
        instructor_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_id: Optional[str] = None,
    ) -> Optional[ClassSession]:
        """First live session of ``instructor_id`` overlapping [start_time, end_time), if any."""
        try:
            query = self.db.query(ClassSession).filter(
                ClassSession.tenant_id == tenant_id,
                ClassSession.instructor_id == instructor_id,
                ClassSession.status.in_(_LIVE_STATUSES),
                ClassSession.start_time < end_time,
                ClassSession.end_time > start_time,
            )
            if exclude_id:
                query = query.filter(ClassSession.id != exclude_id)
            return query.order_by(ClassSession.start_time.asc()).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking instructor conflicts for {instructor_id}: {str(e)}")
            raise RepositoryException(f"Failed to check instructor conflicts: {str(e)}")
