import enum
from decimal import Decimal


class OrdersFilter(str, enum.Enum):
    ALL = "all"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def order_fits(order, orders_filter: OrdersFilter) -> bool:
    if orders_filter == OrdersFilter.IN_PROGRESS:
        return order.rider_id is not None and order.completed_time is None
    if orders_filter == OrdersFilter.COMPLETED:
        return order.completed_time is not None
    return True


def line_total(price, count: int) -> Decimal:
    # SQLite hands numeric columns back as float
    if not isinstance(price, Decimal):
        price = Decimal(str(price))
    return price * count


def sum_totals(items) -> Decimal:
    return sum((item.total_price for item in items), Decimal(0))
