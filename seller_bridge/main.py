from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from seller_bridge.api.routes import auth, accounts, orders, financials, fulfillments, health
from seller_bridge.core.config import settings
from seller_bridge.handlers.exception_handlers import init_exception_handlers
import logging
from seller_bridge.core.logging_config import setup_logging
setup_logging()

logger = logging.getLogger(__name__)

app = FastAPI(title="Daraz Seller Bridge")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[orders.FAILED_ACCOUNTS_HEADER],
)


#init exception handlers
init_exception_handlers(app)
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(accounts.router, prefix="/api/accounts", tags=["Accounts"])
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(financials.router, prefix="/api/financials", tags=["Financials"])
app.include_router(fulfillments.router, prefix="/api", tags=["Fulfillment"])
app.include_router(health.router, prefix="/api/health", tags=["Health"])


@app.on_event("startup")
async def startup():
    logger.info(f"Daraz seller bridge listening on http://{settings.host}:{settings.port}")
    if not settings.is_configured:
        logger.warning(
            "APP_KEY or APP_SECRET is not set. The application will not be able to authenticate with Daraz."
        )


def run():
    import uvicorn

    uvicorn.run("seller_bridge.main:app", host=settings.host, port=settings.port)
