import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from landscape_forms.config import CORS_ORIGINS
from landscape_forms.database import create_db_and_tables
from landscape_forms.logging_config import setup_logging
from landscape_forms.middleware import register_middleware
from landscape_forms.routers import admin, auth, chemicals, forms, users

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    logger.info("Database tables ready")
    yield


app = FastAPI(title="Landscaping Forms API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_middleware(app)

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(forms.router, prefix="/api/forms", tags=["forms"])
app.include_router(chemicals.router, prefix="/api/chemicals", tags=["chemicals"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])


@app.get("/health")
def health():
    return {"status": "success", "message": "Server is running", "code": 200}
