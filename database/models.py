import enum
from sqlalchemy import (
    CHAR, Boolean, CheckConstraint, Column, Date, DateTime, Enum, ForeignKey,
    Integer, LargeBinary, Numeric, SmallInteger, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class UserRole(enum.Enum):
    Customer = "Customer"
    Rider = "Rider"
    Manager = "Manager"


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    username = Column(String(64), nullable=False)
    # SHA-256 hex digest
    password = Column(CHAR(64), nullable=False)
    first_name = Column(String(128))
    last_name = Column(String(128))
    birth_date = Column(Date, nullable=False)
    role = Column(
        Enum(UserRole, name="UserRole"),
        nullable=False,
        default=UserRole.Customer,
        server_default=UserRole.Customer.value,
    )

    addresses = relationship("Address", back_populates="customer", passive_deletes=True)
    cart_items = relationship("Cart", back_populates="customer", passive_deletes=True)
    favorites = relationship("Favorite", back_populates="user", passive_deletes=True)
    notifications = relationship("Notification", back_populates="user", passive_deletes=True)
    orders = relationship(
        "Order", back_populates="customer", foreign_keys="Order.customer_id", passive_deletes=True
    )
    taken_orders = relationship(
        "Order", back_populates="rider", foreign_keys="Order.rider_id", passive_deletes=True
    )

    __table_args__ = (
        UniqueConstraint('username', name='username'),
    )

class Address(Base):
    __tablename__ = 'addresses'

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), nullable=False)
    locality = Column(String(128), nullable=False)
    street = Column(String(128), nullable=False)
    house = Column(Integer, nullable=False)
    corps = Column(String(16))
    apartment = Column(String(16))

    customer = relationship("User", back_populates="addresses")

class Category(Base):
    __tablename__ = 'categories'

    id = Column(Integer, primary_key=True)
    title = Column(String(128), nullable=False)
    description = Column(Text)
    # JPEG image
    preview = Column(LargeBinary)

    foods = relationship("Food", back_populates="category", passive_deletes=True)

class Food(Base):
    __tablename__ = 'food'

    id = Column(Integer, primary_key=True)
    title = Column(String(128), nullable=False)
    description = Column(Text)
    # JPEG image
    preview = Column(LargeBinary)
    category_id = Column(Integer, ForeignKey('categories.id', ondelete="RESTRICT"), nullable=False)
    count = Column(Integer, nullable=False, default=0, server_default="0")
    is_alcohol = Column(Boolean, nullable=False)
    price = Column(Numeric(7, 2), nullable=False)

    category = relationship("Category", back_populates="foods")

class Cart(Base):
    __tablename__ = 'cart'

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), nullable=False)
    food_id = Column(Integer, ForeignKey('food.id', ondelete="CASCADE"), nullable=False)
    count = Column(Integer, nullable=False, default=1, server_default="1")
    add_time = Column(DateTime, nullable=False)

    customer = relationship("User", back_populates="cart_items")
    food = relationship("Food")

    __table_args__ = (
        CheckConstraint('count > 0', name='positive_count'),
        UniqueConstraint('customer_id', 'food_id', name='food_per_customer'),
    )

class Favorite(Base):
    __tablename__ = 'favorites'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), nullable=False)
    food_id = Column(Integer, ForeignKey('food.id', ondelete="CASCADE"), nullable=False)
    add_time = Column(DateTime, nullable=False)

    user = relationship("User", back_populates="favorites")
    food = relationship("Food")

    __table_args__ = (
        UniqueConstraint('user_id', 'food_id', name='food_per_user'),
    )

class Order(Base):
    __tablename__ = 'orders'

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), nullable=False)
    address_id = Column(Integer, ForeignKey('addresses.id', ondelete="RESTRICT"), nullable=False)
    create_time = Column(DateTime, nullable=False)
    rider_id = Column(Integer, ForeignKey('users.id', ondelete="SET NULL"))
    completed_time = Column(DateTime)

    customer = relationship("User", back_populates="orders", foreign_keys=[customer_id])
    rider = relationship("User", back_populates="taken_orders", foreign_keys=[rider_id])
    address = relationship("Address")
    items = relationship("OrderFood", back_populates="order", passive_deletes=True)
    feedbacks = relationship("Feedback", back_populates="order", passive_deletes=True)

class OrderFood(Base):
    __tablename__ = 'orders_food'

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete="CASCADE"), nullable=False)
    food_id = Column(Integer, ForeignKey('food.id', ondelete="CASCADE"), nullable=False)
    count = Column(Integer, nullable=False, default=1, server_default="1")

    order = relationship("Order", back_populates="items")
    food = relationship("Food")

    __table_args__ = (
        CheckConstraint('count > 0', name='positive_count'),
        UniqueConstraint('order_id', 'food_id', name='food_per_order'),
    )

class Notification(Base):
    __tablename__ = 'notifications'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), nullable=False)
    sent_time = Column(DateTime, nullable=False)
    title = Column(String(128), nullable=False)
    description = Column(Text)

    user = relationship("User", back_populates="notifications")

class Feedback(Base):
    __tablename__ = 'feedbacks'

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete="CASCADE"), nullable=False)
    # From 0 to 5
    rating = Column(SmallInteger)
    comment = Column(Text)

    order = relationship("Order", back_populates="feedbacks")

    __table_args__ = (
        CheckConstraint('rating >= 0 AND rating <= 5', name='rating_range'),
    )
