"""Read access to accounts and organizational records.

The gateway never owns these tables. It looks up the acting principal's own
student/faculty row and the records a request targets, nothing more.
"""
import logging
from datetime import datetime
from typing import Protocol

from access_gateway.database import DB, get_db, sanitize_filter_value

logger = logging.getLogger(__name__)


class Account:
    def __init__(self, id: int, email: str, password_hash: str, roles: list[str]):
        self.id = id
        self.email = email
        self.password_hash = password_hash
        self.roles = roles

    @classmethod
    def from_row(cls, row: dict) -> "Account":
        return cls(
            id=row["id"],
            email=row["email"],
            password_hash=row["password_hash"],
            roles=list(row.get("roles") or []),
        )


class StudentRecord:
    def __init__(self, id: int, user_id: int | None, branch_id: int | None, year: int | None = None, semester: int | None = None):
        self.id = id
        self.user_id = user_id
        self.branch_id = branch_id
        self.year = year
        self.semester = semester

    @classmethod
    def from_row(cls, row: dict) -> "StudentRecord":
        return cls(row["id"], row.get("user_id"), row.get("branch_id"), row.get("year"), row.get("semester"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "branch_id": self.branch_id,
            "year": self.year,
            "semester": self.semester,
        }


class FacultyRecord:
    def __init__(self, id: int, user_id: int | None, branch_id: int | None):
        self.id = id
        self.user_id = user_id
        self.branch_id = branch_id

    @classmethod
    def from_row(cls, row: dict) -> "FacultyRecord":
        return cls(row["id"], row.get("user_id"), row.get("branch_id"))

    def to_dict(self) -> dict:
        return {"id": self.id, "user_id": self.user_id, "branch_id": self.branch_id}


class AttendanceRecord:
    def __init__(self, id: int, student_id: int, student_user_id: int | None, date: str | None = None, status: str | None = None):
        self.id = id
        self.student_id = student_id
        self.student_user_id = student_user_id
        self.date = date
        self.status = status

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "date": self.date,
            "status": self.status,
        }


class ResultRecord:
    def __init__(self, id: int, student_id: int, student_user_id: int | None, subject: str | None = None, marks: float | None = None):
        self.id = id
        self.student_id = student_id
        self.student_user_id = student_user_id
        self.subject = subject
        self.marks = marks

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "subject": self.subject,
            "marks": self.marks,
        }


class OrgContext:
    """What the policy needs to know about a principal beyond the token.

    ``student`` is only resolved for STUDENT accounts and ``faculty`` only for
    FACULTY accounts, so a row in the other table never grants anything.
    """

    def __init__(
        self,
        numeric_id: int,
        role_names: list[str],
        student: StudentRecord | None = None,
        faculty: FacultyRecord | None = None,
    ):
        self.numeric_id = numeric_id
        self.role_names = role_names
        self.student = student
        self.faculty = faculty


class PrincipalDirectory(Protocol):
    async def find_account(self, email: str) -> Account | None: ...

    async def find_context(self, subject: str) -> OrgContext | None: ...

    async def get_student(self, student_id: int) -> StudentRecord | None: ...

    async def list_students(self) -> list[StudentRecord]: ...

    async def update_student(self, student_id: int, changes: dict) -> StudentRecord | None: ...

    async def get_faculty(self, faculty_id: int) -> FacultyRecord | None: ...

    async def list_faculties(self) -> list[FacultyRecord]: ...

    async def get_attendance(self, attendance_id: int) -> AttendanceRecord | None: ...

    async def list_attendance_for_student(self, student_id: int) -> list[AttendanceRecord]: ...

    async def get_result(self, result_id: int) -> ResultRecord | None: ...

    async def list_results_for_student(self, student_id: int) -> list[ResultRecord]: ...

    async def store_reset_token(self, account_id: int, token_hash: str, expires_at: datetime) -> None: ...

    async def find_account_by_reset_token(self, token_hash: str) -> tuple[Account, datetime] | None: ...

    async def update_password(self, account_id: int, password_hash: str) -> None: ...


class PostgrestDirectory:
    """PrincipalDirectory over the ``users``, ``students``, ``faculties``, ``attendance`` and ``results`` tables."""

    def __init__(self, db: DB):
        self.db = db

    async def find_account(self, email: str) -> Account | None:
        row = await self.db.select_one(
            "users",
            columns="id,email,password_hash,roles",
            filters={"email": f"eq.{sanitize_filter_value(email)}"},
        )
        return Account.from_row(row) if row else None

    async def find_context(self, subject: str) -> OrgContext | None:
        account = await self.find_account(subject)
        if account is None:
            return None
        student = faculty = None
        if "STUDENT" in account.roles:
            row = await self.db.select_one("students", filters={"user_id": f"eq.{account.id}"})
            student = StudentRecord.from_row(row) if row else None
        if "FACULTY" in account.roles:
            row = await self.db.select_one("faculties", filters={"user_id": f"eq.{account.id}"})
            faculty = FacultyRecord.from_row(row) if row else None
        return OrgContext(account.id, account.roles, student, faculty)

    async def get_student(self, student_id: int) -> StudentRecord | None:
        row = await self.db.select_one("students", filters={"id": f"eq.{student_id}"})
        return StudentRecord.from_row(row) if row else None

    async def list_students(self) -> list[StudentRecord]:
        rows = await self.db.select("students", order="id.asc")
        return [StudentRecord.from_row(r) for r in rows]

    async def update_student(self, student_id: int, changes: dict) -> StudentRecord | None:
        rows = await self.db.update("students", changes, filters={"id": f"eq.{student_id}"})
        return StudentRecord.from_row(rows[0]) if rows else None

    async def get_faculty(self, faculty_id: int) -> FacultyRecord | None:
        row = await self.db.select_one("faculties", filters={"id": f"eq.{faculty_id}"})
        return FacultyRecord.from_row(row) if row else None

    async def list_faculties(self) -> list[FacultyRecord]:
        rows = await self.db.select("faculties", order="id.asc")
        return [FacultyRecord.from_row(r) for r in rows]

    async def get_attendance(self, attendance_id: int) -> AttendanceRecord | None:
        row = await self.db.select_one(
            "attendance",
            columns="id,student_id,date,status,students(user_id)",
            filters={"id": f"eq.{attendance_id}"},
        )
        return _attendance_from_row(row) if row else None

    async def list_attendance_for_student(self, student_id: int) -> list[AttendanceRecord]:
        rows = await self.db.select(
            "attendance",
            columns="id,student_id,date,status,students(user_id)",
            filters={"student_id": f"eq.{student_id}"},
            order="date.desc",
        )
        return [_attendance_from_row(r) for r in rows]

    async def get_result(self, result_id: int) -> ResultRecord | None:
        row = await self.db.select_one(
            "results",
            columns="id,student_id,subject,marks,students(user_id)",
            filters={"id": f"eq.{result_id}"},
        )
        return _result_from_row(row) if row else None

    async def list_results_for_student(self, student_id: int) -> list[ResultRecord]:
        rows = await self.db.select(
            "results",
            columns="id,student_id,subject,marks,students(user_id)",
            filters={"student_id": f"eq.{student_id}"},
            order="id.asc",
        )
        return [_result_from_row(r) for r in rows]

    async def store_reset_token(self, account_id: int, token_hash: str, expires_at: datetime) -> None:
        await self.db.update(
            "users",
            {"reset_token_hash": token_hash, "reset_token_expires_at": expires_at.isoformat()},
            filters={"id": f"eq.{account_id}"},
        )

    async def find_account_by_reset_token(self, token_hash: str) -> tuple[Account, datetime] | None:
        row = await self.db.select_one(
            "users",
            columns="id,email,password_hash,roles,reset_token_expires_at",
            filters={"reset_token_hash": f"eq.{token_hash}"},
        )
        if not row or not row.get("reset_token_expires_at"):
            return None
        return Account.from_row(row), datetime.fromisoformat(row["reset_token_expires_at"])

    async def update_password(self, account_id: int, password_hash: str) -> None:
        await self.db.update(
            "users",
            {"password_hash": password_hash, "reset_token_hash": None, "reset_token_expires_at": None},
            filters={"id": f"eq.{account_id}"},
        )
        logger.info("Password updated for user %s", account_id)


def _attendance_from_row(row: dict) -> AttendanceRecord:
    student = row.get("students") or {}
    return AttendanceRecord(
        id=row["id"],
        student_id=row["student_id"],
        student_user_id=student.get("user_id"),
        date=row.get("date"),
        status=row.get("status"),
    )


def _result_from_row(row: dict) -> ResultRecord:
    student = row.get("students") or {}
    return ResultRecord(
        id=row["id"],
        student_id=row["student_id"],
        student_user_id=student.get("user_id"),
        subject=row.get("subject"),
        marks=row.get("marks"),
    )


def get_directory() -> PrincipalDirectory:
    return PostgrestDirectory(get_db())
