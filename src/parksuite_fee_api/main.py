from fastapi import FastAPI

from parksuite_common.observability import TraceContextMiddleware, setup_loguru
from parksuite_fee_api.api.routes import router as fee_router
from parksuite_fee_api.config import settings
from parksuite_fee_api.services.currency import CurrencyFormatter

setup_loguru(
    settings.app_name,
    log_to_stdout=settings.log_to_stdout,
    log_to_file=settings.log_to_file,
    log_dir=settings.log_dir,
    level=settings.log_level,
)

app = FastAPI(title=settings.app_name)
app.state.currency_formatter = CurrencyFormatter(default_locale=settings.default_locale)
app.add_middleware(TraceContextMiddleware)
app.include_router(fee_router)


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok", "service": settings.app_name}
