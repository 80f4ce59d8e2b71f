import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load env from auroai/.env before settings are read
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

from auroai.core.config import settings, validate_config  # noqa: E402
from auroai.core.database import create_all_tables  # noqa: E402
from auroai.core.errors import install_error_handlers  # noqa: E402
from auroai.core.logging import configure_logging  # noqa: E402
from auroai.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from auroai.core.validation import validate_env  # noqa: E402
from auroai.api import billing, health, plans, profile, whatsapp  # noqa: E402

configure_logging(settings.ENV)
validate_env()
validate_config(strict=settings.CONFIG_STRICT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("auroai")
    logger.info("Starting AuroAI backend...")
    create_all_tables()
    try:
        yield
    finally:
        logger.info("Stopping AuroAI backend...")


app = FastAPI(title="AuroAI - Backend", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

install_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(billing.router, prefix="/api", tags=["billing"])
app.include_router(plans.router, prefix="/api", tags=["plans"])
app.include_router(profile.router, prefix="/api", tags=["profile"])
app.include_router(whatsapp.router, prefix="/api", tags=["whatsapp"])
app.include_router(health.router, tags=["health"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("auroai.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
