"""Shared fixtures: in-memory directory, controllable clocks, app client."""
import os

os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-0123456789")

import bcrypt  # noqa: E402
import pytest  # noqa: E402

from access_gateway.directory import (  # noqa: E402
    Account,
    AttendanceRecord,
    FacultyRecord,
    OrgContext,
    ResultRecord,
    StudentRecord,
)
from access_gateway.rate_limit import LockoutTracker, RateGate  # noqa: E402
from access_gateway.tokens import TokenService  # noqa: E402

PASSWORD = "correct-horse-1"
PASSWORD_HASH = bcrypt.hashpw(PASSWORD.encode(), bcrypt.gensalt(rounds=4)).decode()
SECRET = os.environ["JWT_SECRET"]


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDirectory:
    """PrincipalDirectory backed by dicts. Counts context lookups."""

    def __init__(self):
        self.accounts: dict[str, Account] = {}
        self.students: dict[int, StudentRecord] = {}
        self.faculties: dict[int, FacultyRecord] = {}
        self.attendance: dict[int, AttendanceRecord] = {}
        self.results: dict[int, ResultRecord] = {}
        self.reset_tokens: dict[str, tuple[int, object]] = {}
        self.context_lookups = 0

    def add_account(self, id: int, email: str, roles: list[str], password_hash: str = PASSWORD_HASH) -> Account:
        account = Account(id, email, password_hash, roles)
        self.accounts[email] = account
        return account

    async def find_account(self, email):
        return self.accounts.get(email)

    async def find_context(self, subject):
        self.context_lookups += 1
        account = self.accounts.get(subject)
        if account is None:
            return None
        student = faculty = None
        if "STUDENT" in account.roles:
            student = next((s for s in self.students.values() if s.user_id == account.id), None)
        if "FACULTY" in account.roles:
            faculty = next((f for f in self.faculties.values() if f.user_id == account.id), None)
        return OrgContext(account.id, account.roles, student, faculty)

    async def get_student(self, student_id):
        return self.students.get(student_id)

    async def list_students(self):
        return list(self.students.values())

    async def update_student(self, student_id, changes):
        student = self.students.get(student_id)
        if student is None:
            return None
        for key, value in changes.items():
            setattr(student, key, value)
        return student

    async def get_faculty(self, faculty_id):
        return self.faculties.get(faculty_id)

    async def list_faculties(self):
        return list(self.faculties.values())

    async def get_attendance(self, attendance_id):
        return self.attendance.get(attendance_id)

    async def list_attendance_for_student(self, student_id):
        return [r for r in self.attendance.values() if r.student_id == student_id]

    async def get_result(self, result_id):
        return self.results.get(result_id)

    async def list_results_for_student(self, student_id):
        return [r for r in self.results.values() if r.student_id == student_id]

    async def store_reset_token(self, account_id, token_hash, expires_at):
        self.reset_tokens[token_hash] = (account_id, expires_at)

    async def find_account_by_reset_token(self, token_hash):
        entry = self.reset_tokens.get(token_hash)
        if entry is None:
            return None
        account_id, expires_at = entry
        for account in self.accounts.values():
            if account.id == account_id:
                return account, expires_at
        return None

    async def update_password(self, account_id, password_hash):
        for account in self.accounts.values():
            if account.id == account_id:
                account.password_hash = password_hash
        self.reset_tokens = {h: v for h, v in self.reset_tokens.items() if v[0] != account_id}


ADMIN = "admin@college.edu"
FACULTY_B1 = "faculty1@college.edu"
FACULTY_B2 = "faculty2@college.edu"
FACULTY_NO_BRANCH = "nobranch@college.edu"
STUDENT_7 = "student7@college.edu"
STUDENT_8 = "student8@college.edu"


@pytest.fixture
def directory() -> FakeDirectory:
    d = FakeDirectory()
    d.add_account(1, ADMIN, ["ADMIN"])
    d.add_account(2, FACULTY_B1, ["FACULTY"])
    d.add_account(3, FACULTY_B2, ["FACULTY"])
    d.add_account(4, FACULTY_NO_BRANCH, ["FACULTY"])
    d.add_account(7, STUDENT_7, ["STUDENT"])
    d.add_account(8, STUDENT_8, ["STUDENT"])
    d.faculties[10] = FacultyRecord(10, user_id=2, branch_id=1)
    d.faculties[11] = FacultyRecord(11, user_id=3, branch_id=2)
    d.faculties[12] = FacultyRecord(12, user_id=4, branch_id=None)
    d.students[100] = StudentRecord(100, user_id=7, branch_id=1, year=2, semester=3)
    d.students[101] = StudentRecord(101, user_id=8, branch_id=2, year=1, semester=1)
    d.attendance[500] = AttendanceRecord(500, student_id=100, student_user_id=7, date="2024-01-08", status="PRESENT")
    d.attendance[501] = AttendanceRecord(501, student_id=101, student_user_id=8, date="2024-01-08", status="ABSENT")
    d.results[600] = ResultRecord(600, student_id=100, student_user_id=7, subject="Mathematics", marks=81.5)
    d.results[601] = ResultRecord(601, student_id=101, student_user_id=8, subject="Physics", marks=67.0)
    return d


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token_service(clock) -> TokenService:
    return TokenService(SECRET, ttl_seconds=3600, clock_skew_seconds=30, clock=clock)


@pytest.fixture
def gate(clock) -> RateGate:
    return RateGate(clock=clock)


@pytest.fixture
def lockout(clock) -> LockoutTracker:
    return LockoutTracker(threshold=5, lockout_seconds=15 * 60, clock=clock)
