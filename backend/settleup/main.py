"""FastAPI app entrypoint."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from settleup import models  # noqa: F401  registers tables on Base.metadata
from settleup.config import ALLOWED_ORIGINS, LOG_LEVEL
from settleup.database import Base, engine
from settleup.errors import SettlementError
from settleup.routers import auth, events, expenses, groups, settlements

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("settleup")

Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="SettleUp API",
    description="Record shared costs for an event and settle who owes whom with the fewest payments.",
    version="1.0.0",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SettlementError)
def settlement_error_handler(request: Request, exc: SettlementError):
    if exc.status_code == 403:
        logger.warning("Forbidden %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


app.include_router(auth.router, prefix="/api")
app.include_router(events.router, prefix="/api")
app.include_router(groups.router, prefix="/api")
app.include_router(expenses.router, prefix="/api")
app.include_router(settlements.router, prefix="/api")


@app.get("/")
def root():
    return {"message": "SettleUp API", "docs": "/docs"}
