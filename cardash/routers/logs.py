"""Activity log API — read-only history of dashboard actions.

Car snapshots in the log omit buy_price unless the caller holds
view_car_purchase_price.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import current_permissions, require_permission
from ..models import ActivityLog, User
from ..schemas.responses import PaginatedResponse
from ..services.activity_service import ACTIVITY_TYPES, activity_to_dict
from ..services.permission_service import has_permission
from ..utils.listing import apply_date_range, paginate

router = APIRouter(tags=["logs"])


@router.get("/api/logs", response_model=PaginatedResponse)
def list_logs(
    type: str | None = None,
    user_id: int | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    page: int = Query(1),
    page_size: int = Query(10),
    user: User = Depends(require_permission("view_logs")),
    perms: set[str] = Depends(current_permissions),
    db: Session = Depends(get_db),
):
    q = db.query(ActivityLog)
    if type:
        if type not in ACTIVITY_TYPES:
            raise HTTPException(400, f"Unknown activity type: {type}")
        q = q.filter(ActivityLog.type == type)
    if user_id:
        q = q.filter(ActivityLog.user_id == user_id)
    q = apply_date_range(q, ActivityLog.created_at, date_from, date_to)
    q = q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
    show = has_permission(perms, "view_car_purchase_price")
    return paginate(
        q, page, page_size, serialize=lambda row: activity_to_dict(row, show_buy_price=show)
    )


@router.get("/api/logs/types")
def list_log_types(user: User = Depends(require_permission("view_logs"))):
    return list(ACTIVITY_TYPES)
