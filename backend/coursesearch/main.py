import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coursesearch.api.routes import courses
from coursesearch.core.config import get_settings
from coursesearch.db import init_db

settings = get_settings()
logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s  %(message)s")

if settings.availability_storage_enabled:
    init_db()

app = FastAPI(title=settings.app_name)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(courses.router)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
