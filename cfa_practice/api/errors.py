from datetime import datetime
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from cfa_practice.core.auth import get_optional_user, require_roles
from cfa_practice.core.config import settings
from cfa_practice.core.database import get_db
from cfa_practice.models.orm import User
from cfa_practice.models.schemas import ErrorLogOut
from cfa_practice.services import storage

router = APIRouter()

class ClientErrorData(BaseModel):
    url: Optional[str] = None
    method: Optional[str] = None
    status: Optional[int] = None
    statusText: Optional[str] = None
    errorContent: Optional[Any] = None

class ClientErrorReport(BaseModel):
    errorData: ClientErrorData
    timestamp: Optional[datetime] = None
    userAgent: Optional[str] = None
    clientInfo: Optional[Dict[str, Any]] = None

class ErrorLogList(BaseModel):
    success: bool
    logs: List[ErrorLogOut]

@router.post("/client-error")
def client_error(payload: ClientErrorReport, user: Optional[User] = Depends(get_optional_user), db: Session = Depends(get_db)):
    data = payload.errorData
    storage.log_error(
        db,
        f"Client Error: {data.statusText or 'Unknown error'}",
        error_stack=None if data.errorContent is None else str(data.errorContent),
        user_id=user.id if user else None,
        metadata={"clientInfo": payload.clientInfo, "userAgent": payload.userAgent, **data.model_dump(mode="json", exclude={"errorContent"})},
        route=data.url,
        method=data.method,
        timestamp=payload.timestamp,
    )
    db.commit()
    return {"success": True}

@router.get("/error-logs", response_model=ErrorLogList, dependencies=[Depends(require_roles("admin"))])
def error_logs(limit: Optional[int] = Query(None, ge=1, le=500), db: Session = Depends(get_db)):
    logs = storage.list_error_logs(db, limit or settings.ERROR_LOG_DEFAULT_LIMIT)
    return {"success": True, "logs": logs}
