from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional
from sqlalchemy.engine import Row


@dataclass
class FoodItem:
    """Food row together with the category it belongs to"""
    food: Row
    category: Row


@dataclass
class CartItem:
    food: FoodItem
    item: Row
    total_price: Decimal


@dataclass
class Cart:
    items: list[CartItem] = field(default_factory=list)
    total_price: Decimal = Decimal(0)


@dataclass
class Favorite:
    food: FoodItem
    favorite: Row


@dataclass
class OrderItem:
    food: FoodItem
    item: Row
    total_price: Decimal


@dataclass
class Order:
    order: Row
    customer: Row
    address: Row
    rider: Optional[Row]
    items: list[OrderItem]
    total_price: Decimal
    feedback: Optional[Row]
