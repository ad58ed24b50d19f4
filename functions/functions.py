import enum
import hashlib


class SortOrder(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


class FoodSort(str, enum.Enum):
    TITLE = "title"
    COUNT = "count"
    PRICE = "price"


class CartSort(str, enum.Enum):
    COUNT = "count"
    ADD_TIME = "add_time"


class UserSort(str, enum.Enum):
    USERNAME = "username"
    FIRST_NAME = "first_name"
    LAST_NAME = "last_name"


class PreviewOf(str, enum.Enum):
    CATEGORY = "category"
    FOOD = "food"


def hash_password(password: str) -> str:
    """Return the 64-character SHA-256 hex digest stored in users.password"""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def sort_rows(rows, key: str, order: SortOrder = SortOrder.ASC) -> list:
    """
    Sort result rows by a column name.
    Missing values go first, ties keep id order.
    """
    def sort_key(row):
        value = getattr(row, key)
        return value is not None, value, row.id

    return sorted(rows, key=sort_key, reverse=order == SortOrder.DESC)
