from fastapi import APIRouter, Depends

from access_gateway.auth import get_current_principal
from access_gateway.directory import PrincipalDirectory, get_directory
from access_gateway.exceptions import NotFoundError
from access_gateway.policy import Principal, Role, RoleOrSelf, enforce

router = APIRouter()

STAFF = (Role.ADMIN, Role.FACULTY)


@router.get("/student/{student_id}")
async def list_results_for_student(
    student_id: int,
    principal: Principal = Depends(get_current_principal),
    directory: PrincipalDirectory = Depends(get_directory),
):
    student = await directory.get_student(student_id)
    if student is None:
        raise NotFoundError("Student", str(student_id))
    await enforce(principal, RoleOrSelf(STAFF, student.user_id))
    results = await directory.list_results_for_student(student_id)
    return {"results": [r.to_dict() for r in results]}


@router.get("/{result_id}")
async def get_result(
    result_id: int,
    principal: Principal = Depends(get_current_principal),
    directory: PrincipalDirectory = Depends(get_directory),
):
    result = await directory.get_result(result_id)
    if result is None:
        raise NotFoundError("Result", str(result_id))
    await enforce(principal, RoleOrSelf(STAFF, result.student_user_id))
    return result.to_dict()
