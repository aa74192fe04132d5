"""Portfolio ledger, analytics and valuation package."""

from folio_server.portfolio.models import Holding, Transaction
from folio_server.portfolio.portfolio_service import PortfolioService

__all__ = ["Holding", "PortfolioService", "Transaction"]
