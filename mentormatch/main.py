# mentormatch/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mentormatch import __version__
from mentormatch.api import admin, auth, match, notification, users
from mentormatch.config import settings
from mentormatch.database import Base, engine
from mentormatch.exceptions import MatchingError

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Migrations own the schema in production; this keeps fresh dev databases usable.
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="MentorMatch API",
    description="Scored mentor-mentee suggestions with a two-sided accept flow",
    version=__version__,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (auth, users, match, notification, admin):
    app.include_router(module.router)


@app.exception_handler(MatchingError)
async def matching_error_handler(request: Request, exc: MatchingError):
    logger.warning("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.code)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "mentormatch", "version": __version__}
