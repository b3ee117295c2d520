"""StockBasket - allocation and rebalancing engine for weighted stock baskets."""

__version__ = "0.1.0"
