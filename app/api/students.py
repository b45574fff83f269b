from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.deps import require_role
from app.core.errors import ValidationFailure, success_payload
from app.db.session import get_db
from app.models.student import Student
from app.models.student_staff import StudentStaff
from app.models.user import User
from app.schemas.students import DocumentSearchIn, StudentCreate, StudentUpdate
from app.schemas.filters import ColumnFilter, ListingFilterSpec, RelationFilter
from app.services.api_query import handle_api_request
from app.services.json_fields import json_search, update_with_deep_merge
from app.services.query_builder import QueryBuilder
from app.services.records import commit_or_400, find_or_404
from app.services.roles_bootstrap import ROLE_ADMIN, ROLE_STAFF
from app.services.search_params import RequestParams
from app.services.serializers import serialize_one

router = APIRouter()

STUDENT_LISTING = ListingFilterSpec(
    filters=[
        ColumnFilter(param="status", column="status"),
        ColumnFilter(param="refId", column="ref_id"),
        ColumnFilter(param="name", column="name"),
        ColumnFilter(param="email", column="email"),
        ColumnFilter(param="phone", column="phone"),
        RelationFilter(param="agentId", relation="agent", column="id"),
        RelationFilter(param="staffId", relation="assign_staffs", column="staff_id"),
        RelationFilter(param="createdBy", relation="created_by", column="id"),
        ColumnFilter(param="dob", column="dob"),
    ],
    search_columns=["name", "email", "phone", "ref_id"],
)
STUDENT_RELATIONS = ["agent", "assign_staffs"]

staff_or_admin = require_role(ROLE_ADMIN, ROLE_STAFF)


def _sync_staffs(db: Session, student: Student, staff_ids) -> None:
    wanted = list(dict.fromkeys(staff_ids))
    for staff_id in wanted:
        if db.get(User, staff_id) is None:
            raise ValidationFailure("The selected staff is invalid.")
    current = {item.staff_id: item for item in student.assign_staffs}
    student.assign_staffs = [current.get(staff_id) or StudentStaff(staff_id=staff_id) for staff_id in wanted]


@router.get("")
def list_students(request: Request, db: Session = Depends(get_db), user: User = Depends(staff_or_admin)):
    params = RequestParams.from_request(request)
    data = handle_api_request(params, QueryBuilder(db, Student), with_=STUDENT_RELATIONS, listing=STUDENT_LISTING)
    return success_payload("Students retrieved successfully", data)


@router.post("/documents/search")
def search_student_documents(
    payload: DocumentSearchIn,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(staff_or_admin),
):
    builder = QueryBuilder(db, Student)
    json_search(builder, "documents", payload.conditions)
    params = RequestParams.from_request(request)
    data = handle_api_request(params, builder, with_=STUDENT_RELATIONS, listing=STUDENT_LISTING)
    return success_payload("Students retrieved successfully", data)


@router.get("/{student_id}")
def get_student(student_id: str, db: Session = Depends(get_db), user: User = Depends(staff_or_admin)):
    return success_payload("Student retrieved successfully", serialize_one(find_or_404(db, Student, student_id)))


@router.post("", status_code=201)
def create_student(payload: StudentCreate, db: Session = Depends(get_db), user: User = Depends(staff_or_admin)):
    data = payload.model_dump(exclude={"staff_ids"})
    if data.get("agent_id") is not None and db.get(User, data["agent_id"]) is None:
        raise ValidationFailure("The selected agent is invalid.")
    student = Student(**data, created_by_id=user.id)
    _sync_staffs(db, student, payload.staff_ids)
    db.add(student)
    commit_or_400(db)
    db.refresh(student)
    return success_payload("Student created successfully", serialize_one(student))


@router.patch("/{student_id}")
def update_student(
    student_id: str,
    payload: StudentUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(staff_or_admin),
):
    student = find_or_404(db, Student, student_id)
    changes = payload.model_dump(exclude_unset=True)
    staff_ids = changes.pop("staff_ids", None)
    if changes.get("agent_id") is not None and db.get(User, changes["agent_id"]) is None:
        raise ValidationFailure("The selected agent is invalid.")
    update_with_deep_merge(student, changes)
    if staff_ids is not None:
        _sync_staffs(db, student, staff_ids)
    db.add(student)
    commit_or_400(db)
    db.refresh(student)
    return success_payload("Student updated successfully", serialize_one(student))


@router.delete("/{student_id}")
def delete_student(student_id: str, db: Session = Depends(get_db), user: User = Depends(require_role(ROLE_ADMIN))):
    student = find_or_404(db, Student, student_id)
    db.delete(student)
    db.commit()
    return success_payload("Student deleted successfully")
