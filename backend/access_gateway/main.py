import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from access_gateway.config import settings
from access_gateway.database import close_db, init_db

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield
    await close_db()


app = FastAPI(title="College Portal Access Gateway", lifespan=lifespan)

# Request ID middleware (must be added before other middleware)
from access_gateway.exceptions import RequestIdMiddleware, setup_exception_handlers  # noqa: E402

app.add_middleware(RequestIdMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from access_gateway.middleware import AuditLogMiddleware  # noqa: E402

app.add_middleware(AuditLogMiddleware)

setup_exception_handlers(app)

# Register routes
from access_gateway.routes import attendance, auth, faculties, results, students  # noqa: E402

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(students.router, prefix="/api/students", tags=["students"])
app.include_router(faculties.router, prefix="/api/faculties", tags=["faculties"])
app.include_router(attendance.router, prefix="/api/attendance", tags=["attendance"])
app.include_router(results.router, prefix="/api/results", tags=["results"])


@app.get("/api/health")
async def health():
    return {"status": "ok"}
