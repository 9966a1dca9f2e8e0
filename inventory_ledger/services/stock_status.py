"""
Stock status classification

Single source of the in-stock / low-stock / out-of-stock rule used by the
inventory listing, the status filter and the dashboard summary. The SQL form
below must agree with classify() row for row.
"""
import enum

from sqlalchemy import and_


class StockStatus(str, enum.Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


def classify(stock: int, min_stock_level: int) -> StockStatus:
    """
    Map a stock count and its threshold to a status tag.

    Negative stock (left behind by a recount correction) is out of stock.
    """
    if stock <= 0:
        return StockStatus.OUT_OF_STOCK
    if stock <= min_stock_level:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def status_clause(status: StockStatus, stock_col, min_stock_col):
    """SQL predicate selecting rows whose classify() result is `status`."""
    status = StockStatus(status)
    if status is StockStatus.OUT_OF_STOCK:
        return stock_col <= 0
    if status is StockStatus.LOW_STOCK:
        return and_(stock_col > 0, stock_col <= min_stock_col)
    return and_(stock_col > 0, stock_col > min_stock_col)
