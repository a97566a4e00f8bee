"""FastAPI dependencies wiring the settlement core to the database."""
from fastapi import Depends
from sqlalchemy.orm import Session

from settleup.database import get_db
from settleup.services.fx_rates import FxRateResolver, RateFetcher, RequestsRateFetcher
from settleup.services.settlement_orchestrator import SettlementOrchestrator
from settleup.stores import (
    SqlEventStore, SqlExpenseStore, SqlGroupStore, SqlRateCache, SqlSettlementStore,
)

_rate_fetcher = RequestsRateFetcher()


def get_rate_fetcher() -> RateFetcher:
    return _rate_fetcher


def get_fx_resolver(
    db: Session = Depends(get_db),
    fetcher: RateFetcher = Depends(get_rate_fetcher),
) -> FxRateResolver:
    return FxRateResolver(SqlRateCache(db), fetcher)


def get_orchestrator(
    db: Session = Depends(get_db),
    fx: FxRateResolver = Depends(get_fx_resolver),
) -> SettlementOrchestrator:
    return SettlementOrchestrator(
        events=SqlEventStore(db),
        expenses=SqlExpenseStore(db),
        groups=SqlGroupStore(db),
        settlements=SqlSettlementStore(db),
        fx=fx,
    )
