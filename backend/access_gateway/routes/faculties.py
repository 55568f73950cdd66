from fastapi import APIRouter, Depends

from access_gateway.auth import get_current_principal, require_roles
from access_gateway.directory import PrincipalDirectory, get_directory
from access_gateway.exceptions import NotFoundError
from access_gateway.policy import BranchScoped, Principal, Role, enforce, filter_authorized

router = APIRouter()


@router.get("/")
async def list_faculties(
    principal: Principal = Depends(require_roles(Role.ADMIN, Role.FACULTY)),
    directory: PrincipalDirectory = Depends(get_directory),
):
    faculties = await directory.list_faculties()
    faculties = await filter_authorized(principal, faculties, lambda f: BranchScoped(f.branch_id))
    return {"faculties": [f.to_dict() for f in faculties]}


@router.get("/{faculty_id}")
async def get_faculty(
    faculty_id: int,
    principal: Principal = Depends(get_current_principal),
    directory: PrincipalDirectory = Depends(get_directory),
):
    faculty = await directory.get_faculty(faculty_id)
    if faculty is None:
        raise NotFoundError("Faculty", str(faculty_id))
    await enforce(principal, BranchScoped(faculty.branch_id))
    return faculty.to_dict()
