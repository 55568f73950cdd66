import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from access_gateway.auth import get_current_principal, require_roles
from access_gateway.directory import PrincipalDirectory, get_directory
from access_gateway.exceptions import NotFoundError, ValidationError
from access_gateway.policy import AnyOf, BranchScoped, Principal, Role, SelfOnly, enforce, filter_authorized
from access_gateway.utils import mask_email

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
async def list_students(
    branch_id: int | None = Query(None),
    year: int | None = Query(None),
    semester: int | None = Query(None),
    principal: Principal = Depends(require_roles(Role.ADMIN, Role.FACULTY)),
    directory: PrincipalDirectory = Depends(get_directory),
):
    students = await directory.list_students()
    # Faculty only see their own branch
    students = await filter_authorized(principal, students, lambda s: BranchScoped(s.branch_id))
    if branch_id is not None:
        students = [s for s in students if s.branch_id == branch_id]
    if year is not None:
        students = [s for s in students if s.year == year]
    if semester is not None:
        students = [s for s in students if s.semester == semester]
    return {"students": [s.to_dict() for s in students]}


@router.get("/{student_id}")
async def get_student(
    student_id: int,
    principal: Principal = Depends(get_current_principal),
    directory: PrincipalDirectory = Depends(get_directory),
):
    student = await directory.get_student(student_id)
    if student is None:
        raise NotFoundError("Student", str(student_id))
    await enforce(principal, AnyOf(BranchScoped(student.branch_id), SelfOnly(student.user_id)))
    return student.to_dict()


class StudentUpdate(BaseModel):
    branch_id: int | None = None
    year: int | None = Field(None, ge=1)
    semester: int | None = Field(None, ge=1)


@router.put("/{student_id}")
async def update_student(
    student_id: int,
    body: StudentUpdate,
    principal: Principal = Depends(get_current_principal),
    directory: PrincipalDirectory = Depends(get_directory),
):
    student = await directory.get_student(student_id)
    if student is None:
        raise NotFoundError("Student", str(student_id))
    await enforce(principal, AnyOf(BranchScoped(student.branch_id), SelfOnly(student.user_id)))
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise ValidationError("Nothing to update")
    updated = await directory.update_student(student_id, changes)
    if updated is None:
        raise NotFoundError("Student", str(student_id))
    logger.info("Student %s updated by %s: %s", student_id, mask_email(principal.subject), sorted(changes))
    return updated.to_dict()
