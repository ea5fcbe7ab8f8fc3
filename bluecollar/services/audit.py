from typing import List, Optional, Tuple

from fastapi import Request
from sqlalchemy import func, select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from bluecollar.models.models import AuditLog


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def log_audit(db: AsyncSession, actor_id: int, action: str, object_type: str = None, object_id: str = None, detail: dict = None, ip_address: str = None):
    audit = AuditLog(
        actor_id=actor_id,
        action=action,
        object_type=object_type,
        object_id=object_id,
        detail=detail,
        ip_address=ip_address,
    )
    db.add(audit)
    # do not commit here; caller should include in transaction context
    return audit


async def list_audit_logs(
    db: AsyncSession,
    page: int = 1,
    limit: int = 50,
    action: Optional[str] = None,
    actor_id: Optional[int] = None,
) -> Tuple[List[AuditLog], int]:
    stmt = sa_select(AuditLog)
    count_stmt = sa_select(func.count(AuditLog.id))
    if action:
        stmt = stmt.where(AuditLog.action == action)
        count_stmt = count_stmt.where(AuditLog.action == action)
    if actor_id:
        stmt = stmt.where(AuditLog.actor_id == actor_id)
        count_stmt = count_stmt.where(AuditLog.actor_id == actor_id)
    total = (await db.execute(count_stmt)).scalar_one()
    stmt = stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset((page - 1) * limit).limit(limit)
    return list((await db.execute(stmt)).scalars().all()), total
