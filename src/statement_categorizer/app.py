from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from statement_categorizer.api.routes import imports, rules, system, transactions, views
from statement_categorizer.core import settings
from statement_categorizer.domain.merchants import ClusterSettings
from statement_categorizer.logger import get_logger, setup_logging
from statement_categorizer.manager import LedgerService
from statement_categorizer.services.importing import ImportPipeline

logger = get_logger(__name__)


def create_app() -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Initializing services...")
        settings.log_environment()

        service = LedgerService(
            data_dir=settings.DATA_DIR,
            cluster_settings=ClusterSettings.from_env(),
        )
        app.state.service = service
        app.state.pipeline = ImportPipeline(service=service)

        logger.info("Services initialized.")
        yield
        logger.info("Service shutting down.")

    app = FastAPI(title="Statement Categorizer", lifespan=lifespan)

    app.include_router(system.router)
    app.include_router(imports.router)
    app.include_router(transactions.router)
    app.include_router(rules.router)
    app.include_router(views.router)

    return app


app = create_app()
