# backend/fitstudio/repositories/member_repository.py
from typing import Optional

from sqlalchemy.orm import Session

from ..models.member import Member
from .base_repository import BaseRepository


class MemberRepository(BaseRepository[Member]):
    def __init__(self, db: Session):
        super().__init__(db, Member)

    def get_active_for_tenant(self, member_id: str, tenant_id: str) -> Optional[Member]:
        member = self.get_for_tenant(member_id, tenant_id)
        if member is None or not member.is_active:
            return None
        return member
