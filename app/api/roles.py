from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.deps import require_permission
from app.core.errors import success_payload
from app.db.session import get_db
from app.models.role import Role
from app.models.user import User
from app.services.api_query import handle_api_request
from app.services.query_builder import QueryBuilder
from app.services.search_params import RequestParams

router = APIRouter()


@router.get("")
def list_roles(request: Request, db: Session = Depends(get_db), admin: User = Depends(require_permission("view_users"))):
    params = RequestParams.from_request(request)
    data = handle_api_request(params, QueryBuilder(db, Role), with_=["permissions"])
    return success_payload("Roles retrieved successfully", data)
