"""User-friendly APIs for StockBasket.

Components:
- BasketAPI: Async buy/rebalance/sell/SIP orchestration over the planners
"""

from stockbasket.api.basket_api import BasketAPI, ExecutionReport

__all__ = [
    "BasketAPI",
    "ExecutionReport",
]
