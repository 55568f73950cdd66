from fastapi import APIRouter, Depends

from access_gateway.auth import get_current_principal
from access_gateway.directory import PrincipalDirectory, get_directory
from access_gateway.exceptions import DenialReason, NotFoundError, PolicyDeniedError
from access_gateway.policy import Principal, Role, RoleOrSelf, enforce

router = APIRouter()

STAFF = (Role.ADMIN, Role.FACULTY)


@router.get("/my")
async def my_attendance(
    principal: Principal = Depends(get_current_principal),
    directory: PrincipalDirectory = Depends(get_directory),
):
    # Students only, through their own student row
    if not principal.has_role(Role.STUDENT):
        raise PolicyDeniedError(DenialReason.WRONG_ROLE)
    ctx = await principal.context()
    if ctx is None or ctx.student is None:
        raise PolicyDeniedError(DenialReason.MISSING_RECORD)
    records = await directory.list_attendance_for_student(ctx.student.id)
    return {"attendance": [r.to_dict() for r in records]}


@router.get("/student/{student_id}")
async def list_attendance_for_student(
    student_id: int,
    principal: Principal = Depends(get_current_principal),
    directory: PrincipalDirectory = Depends(get_directory),
):
    student = await directory.get_student(student_id)
    if student is None:
        raise NotFoundError("Student", str(student_id))
    await enforce(principal, RoleOrSelf(STAFF, student.user_id))
    records = await directory.list_attendance_for_student(student_id)
    return {"attendance": [r.to_dict() for r in records]}


@router.get("/{attendance_id}")
async def get_attendance(
    attendance_id: int,
    principal: Principal = Depends(get_current_principal),
    directory: PrincipalDirectory = Depends(get_directory),
):
    record = await directory.get_attendance(attendance_id)
    if record is None:
        raise NotFoundError("Attendance", str(attendance_id))
    await enforce(principal, RoleOrSelf(STAFF, record.student_user_id))
    return record.to_dict()
