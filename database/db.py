from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy import event, Boolean, Date, LargeBinary, Numeric
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
import logging
from decimal import Decimal
from config import Config
from sqlalchemy.sql import text, bindparam
from typing import Optional
from database.models import Base, UserRole
from database.schemas import Cart, CartItem, Favorite, FoodItem, Order, OrderItem
from functions.functions import (
    CartSort, FoodSort, PreviewOf, SortOrder, UserSort, hash_password, sort_rows,
)
from functions.order_functions import OrdersFilter, line_total, order_fits, sum_totals
from validations.validation import (
    validate_count, validate_feedback, validate_price, validate_rating, validate_username,
)

# Preview columns hold JPEG images and are only read by get_preview
FOOD_COLUMNS = """
    food.id,
    food.title,
    food.description,
    food.category_id,
    food.count,
    food.is_alcohol,
    food.price
"""
USER_COLUMNS = "id, username, first_name, last_name, birth_date, role"
ORDER_COLUMNS = "id, customer_id, address_id, create_time, rider_id, completed_time"

SELECT_CATEGORIES = text("""
    SELECT id, title, description
    FROM categories
    ORDER BY title
""")

PREVIEW_QUERIES = {
    PreviewOf.CATEGORY: text("SELECT preview FROM categories WHERE id = :id"),
    PreviewOf.FOOD: text("SELECT preview FROM food WHERE id = :id"),
}

MERGE_ERROR = "database was changed during data merging"


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    def __init__(self, url: Optional[str] = None):
        self._url = url
        self._engine = None
        self._session_factory = None

    def _get_database_url(self):
        return self._url or Config.database_url()

    async def connect(self):
        if not self._engine:
            try:
                url = make_url(self._get_database_url())
                options = {"echo": Config.DB_ECHO}
                if url.get_backend_name() == "sqlite":
                    self._engine = create_async_engine(url, **options)
                    event.listen(self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
                else:
                    self._engine = create_async_engine(
                        url,
                        pool_size=Config.DB_POOL_SIZE,
                        max_overflow=Config.DB_MAX_OVERFLOW,
                        **options
                    )
                self._session_factory = sessionmaker(
                    self._engine,
                    class_=AsyncSession,
                    expire_on_commit=False
                )
            except SQLAlchemyError as e:
                logging.error(f"Database connection error: {e}")
                raise

    async def get_session(self) -> AsyncSession:
        if not self._session_factory:
            await self.connect()
        return self._session_factory()

    async def close(self):
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    async def create_tables(self):
        """Create the UserRole type and all tables, handing them to DB_OWNER if set"""
        await self.connect()
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            if Config.DB_OWNER and self._engine.dialect.name == "postgresql":
                owner = self._engine.dialect.identifier_preparer.quote(Config.DB_OWNER)
                for table in Base.metadata.sorted_tables:
                    await conn.execute(text(f"ALTER TABLE IF EXISTS public.{table.name} OWNER TO {owner}"))
        logging.info("Database schema created")

    async def drop_tables(self):
        await self.connect()
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logging.info("Database schema dropped")

    async def _fetch_all(self, query, params: Optional[dict] = None,
                         error: str = "Failed to load data"):
        session = await self.get_session()
        try:
            result = await session.execute(query, params or {})
            return result.fetchall(), None
        except SQLAlchemyError as e:
            logging.error(f"Error running query: {e}")
            return None, error
        finally:
            await session.close()

    async def _fetch_one(self, query, params: dict, error: str = "Failed to load data"):
        session = await self.get_session()
        try:
            result = await session.execute(query, params)
            return result.fetchone(), None
        except SQLAlchemyError as e:
            logging.error(f"Error running query: {e}")
            return None, error
        finally:
            await session.close()

    async def _is_true(self, query, params: dict) -> tuple[bool, str | None]:
        session = await self.get_session()
        try:
            result = await session.execute(query, params)
            return bool(result.scalar()), None
        except SQLAlchemyError as e:
            logging.error(f"Error running check: {e}")
            return False, "Failed to check data"
        finally:
            await session.close()

    async def _insert(self, query, params: dict, rejected: str,
                      error: str = "Failed to save data") -> tuple[int | None, str | None]:
        """Run an INSERT ... RETURNING id and commit it"""
        session = await self.get_session()
        try:
            result = await session.execute(query, params)
            new_id = result.scalar_one()
            await session.commit()
            return new_id, None
        except IntegrityError as e:
            logging.warning(f"Insert rejected: {e.orig}")
            await session.rollback()
            return None, rejected
        except SQLAlchemyError as e:
            logging.error(f"Error inserting data: {e}")
            await session.rollback()
            return None, error
        finally:
            await session.close()

    async def _modify(self, query, params: dict, rejected: str = "Operation is not allowed",
                      error: str = "Failed to save data") -> tuple[bool, str | None]:
        """Run an UPDATE or DELETE, True when at least one row changed"""
        session = await self.get_session()
        try:
            result = await session.execute(query, params)
            await session.commit()
            return result.rowcount != 0, None
        except IntegrityError as e:
            logging.warning(f"Modification rejected: {e.orig}")
            await session.rollback()
            return False, rejected
        except SQLAlchemyError as e:
            logging.error(f"Error modifying data: {e}")
            await session.rollback()
            return False, error
        finally:
            await session.close()

    # Users

    async def add_user(self, username: str, password: str, birth_date,
                       first_name: str | None = None, last_name: str | None = None,
                       role: UserRole = UserRole.Customer) -> tuple[int | None, str | None]:
        """Register a user, the password is stored as a SHA-256 digest"""
        if not validate_username(username):
            return None, "Username must be 1 to 64 characters long"

        query = text("""
            INSERT INTO users (username, password, first_name, last_name, birth_date, role)
            VALUES (:username, :password, :first_name, :last_name, :birth_date, :role)
            RETURNING id
        """).bindparams(bindparam("birth_date", type_=Date))
        user_id, error = await self._insert(query, {
            "username": username,
            "password": hash_password(password),
            "first_name": first_name,
            "last_name": last_name,
            "birth_date": birth_date,
            "role": role.value
        }, rejected="Username is already taken")
        if user_id:
            logging.info(f"New user added: {username} ({role.value})")
        return user_id, error

    async def is_credentials_valid(self, username: str, password: str) -> tuple[bool, str | None]:
        query = text("""
            SELECT EXISTS (
                SELECT 1 FROM users
                WHERE username = :username AND password = :password
            )
        """)
        return await self._is_true(query, {
            "username": username,
            "password": hash_password(password)
        })

    async def get_user_by_name(self, username: str):
        query = text(f"SELECT {USER_COLUMNS} FROM users WHERE username = :username")
        user, error = await self._fetch_one(query, {"username": username})
        if error:
            return None, error
        if not user:
            logging.warning(f"User not found: {username}")
            return None, "User not found"
        return user, None

    async def get_user_by_id(self, user_id: int):
        query = text(f"SELECT {USER_COLUMNS} FROM users WHERE id = :user_id")
        user, error = await self._fetch_one(query, {"user_id": user_id})
        if error:
            return None, error
        if not user:
            logging.warning(f"User not found: ID {user_id}")
            return None, "User not found"
        return user, None

    async def get_users(self, sort_by: UserSort = UserSort.USERNAME,
                        order: SortOrder = SortOrder.ASC):
        users, error = await self._fetch_all(text(f"SELECT {USER_COLUMNS} FROM users"))
        if error:
            return None, error
        return sort_rows(users, sort_by.value, order), None

    async def set_user_role(self, user_id: int, role: UserRole) -> tuple[bool, str | None]:
        query = text("UPDATE users SET role = :role WHERE id = :user_id")
        changed, error = await self._modify(query, {"role": role.value, "user_id": user_id})
        if changed:
            logging.info(f"User {user_id} got role {role.value}")
        return changed, error

    async def delete_user(self, user_id: int) -> tuple[bool, str | None]:
        """Delete a user with their cart, favorites, addresses and notifications"""
        query = text("DELETE FROM users WHERE id = :user_id")
        deleted, error = await self._modify(
            query, {"user_id": user_id},
            rejected="User is still referenced by other records"
        )
        if deleted:
            logging.info(f"User deleted: ID {user_id}")
        return deleted, error

    # Notifications

    async def get_user_notifications(self, user_id: int):
        query = text("""
            SELECT id, sent_time, title, description
            FROM notifications
            WHERE user_id = :user_id
            ORDER BY sent_time DESC, id DESC
        """)
        return await self._fetch_all(query, {"user_id": user_id})

    async def add_notification(self, user_id: int, title: str,
                               description: str | None = None) -> tuple[int | None, str | None]:
        query = text("""
            INSERT INTO notifications (user_id, sent_time, title, description)
            VALUES (:user_id, CURRENT_TIMESTAMP, :title, :description)
            RETURNING id
        """)
        return await self._insert(query, {
            "user_id": user_id,
            "title": title,
            "description": description
        }, rejected="User not found")

    async def broadcast_notification(self, role: UserRole, title: str,
                                     description: str | None = None) -> tuple[list[int] | None, str | None]:
        """Send the same notification to every user holding the role"""
        session = await self.get_session()
        try:
            query = text("SELECT id FROM users WHERE role = :role ORDER BY id")
            result = await session.execute(query, {"role": role.value})
            user_ids = [row.id for row in result.fetchall()]

            query = text("""
                INSERT INTO notifications (user_id, sent_time, title, description)
                VALUES (:user_id, CURRENT_TIMESTAMP, :title, :description)
                RETURNING id
            """)
            notification_ids = []
            for user_id in user_ids:
                result = await session.execute(query, {
                    "user_id": user_id,
                    "title": title,
                    "description": description
                })
                notification_ids.append(result.scalar_one())
            await session.commit()

            logging.info(f"Notification '{title}' sent to {len(notification_ids)} users with role {role.value}")
            return notification_ids, None

        except SQLAlchemyError as e:
            logging.error(f"Error broadcasting notification: {e}")
            await session.rollback()
            return None, "Failed to send notifications"
        finally:
            await session.close()

    # Addresses

    async def get_user_addresses(self, customer_id: int):
        """Customer addresses, most recently added first"""
        query = text("""
            SELECT *
            FROM addresses
            WHERE customer_id = :customer_id
            ORDER BY id DESC
        """)
        return await self._fetch_all(query, {"customer_id": customer_id})

    async def add_user_address(self, customer_id: int, locality: str, street: str, house: int,
                               corps: str | None = None, apartment: str | None = None):
        query = text("""
            INSERT INTO addresses (customer_id, locality, street, house, corps, apartment)
            VALUES (:customer_id, :locality, :street, :house, :corps, :apartment)
            RETURNING id
        """)
        return await self._insert(query, {
            "customer_id": customer_id,
            "locality": locality,
            "street": street,
            "house": house,
            "corps": corps,
            "apartment": apartment
        }, rejected="User not found")

    async def delete_user_address(self, customer_id: int, address_id: int) -> tuple[bool, str | None]:
        query = text("""
            DELETE FROM addresses
            WHERE id = :address_id AND customer_id = :customer_id
        """)
        return await self._modify(
            query, {"address_id": address_id, "customer_id": customer_id},
            rejected="Address is used by an order"
        )

    # Catalog

    async def get_categories(self):
        return await self._fetch_all(SELECT_CATEGORIES)

    async def add_category(self, title: str, description: str | None = None,
                           preview: bytes | None = None) -> tuple[int | None, str | None]:
        query = text("""
            INSERT INTO categories (title, description, preview)
            VALUES (:title, :description, :preview)
            RETURNING id
        """).bindparams(bindparam("preview", type_=LargeBinary))
        category_id, error = await self._insert(query, {
            "title": title,
            "description": description,
            "preview": preview
        }, rejected="Category could not be added")
        if category_id:
            logging.info(f"New category added: {title}")
        return category_id, error

    async def delete_category(self, category_id: int) -> tuple[bool, str | None]:
        query = text("DELETE FROM categories WHERE id = :category_id")
        return await self._modify(
            query, {"category_id": category_id},
            rejected="Category still contains food"
        )

    async def get_food_in_category(self, category_id: int, sort_by: FoodSort = FoodSort.TITLE,
                                   order: SortOrder = SortOrder.ASC):
        query = text(f"""
            SELECT {FOOD_COLUMNS}
            FROM food
            WHERE category_id = :category_id
        """)
        food, error = await self._fetch_all(query, {"category_id": category_id})
        if error:
            return None, error
        return sort_rows(food, sort_by.value, order), None

    async def add_food(self, title: str, category_id: int, price, is_alcohol: bool,
                       count: int = 0, description: str | None = None,
                       preview: bytes | None = None) -> tuple[int | None, str | None]:
        if not validate_price(price):
            return None, "Price must be a non-negative amount with at most 2 decimal places"
        price = Decimal(str(price))

        query = text("""
            INSERT INTO food (title, description, preview, category_id, count, is_alcohol, price)
            VALUES (:title, :description, :preview, :category_id, :count, :is_alcohol, :price)
            RETURNING id
        """).bindparams(
            bindparam("preview", type_=LargeBinary),
            bindparam("is_alcohol", type_=Boolean),
            bindparam("price", type_=Numeric(7, 2)),
        )
        food_id, error = await self._insert(query, {
            "title": title,
            "description": description,
            "preview": preview,
            "category_id": category_id,
            "count": count,
            "is_alcohol": is_alcohol,
            "price": price
        }, rejected="Category not found")
        if food_id:
            logging.info(f"New food added: {title} in category {category_id}")
        return food_id, error

    async def delete_food(self, food_id: int) -> tuple[bool, str | None]:
        query = text("DELETE FROM food WHERE id = :food_id")
        return await self._modify(query, {"food_id": food_id})

    async def get_preview(self, of: PreviewOf, item_id: int) -> tuple[bytes | None, str | None]:
        row, error = await self._fetch_one(PREVIEW_QUERIES[of], {"id": item_id})
        if error:
            return None, error
        if not row:
            return None, f"{of.value.capitalize()} not found"
        return row.preview, None

    async def _query_food(self, session, query, params: dict) -> dict[int, FoodItem]:
        result = await session.execute(SELECT_CATEGORIES)
        categories = {category.id: category for category in result.fetchall()}

        result = await session.execute(query, params)
        food = {}
        for row in result.fetchall():
            category = categories.get(row.category_id)
            if category is None:
                raise LookupError(MERGE_ERROR)
            food[row.id] = FoodItem(food=row, category=category)
        return food

    # Favorites

    async def get_favorite_food(self, user_id: int):
        query = text(f"""
            SELECT {FOOD_COLUMNS}
            FROM favorites
            JOIN food ON favorites.food_id = food.id
            WHERE favorites.user_id = :user_id
        """)
        return await self._fetch_all(query, {"user_id": user_id})

    async def get_user_favorites(self, user_id: int) -> tuple[list[Favorite] | None, str | None]:
        session = await self.get_session()
        try:
            food = await self._query_food(session, text(f"""
                SELECT {FOOD_COLUMNS}
                FROM favorites
                JOIN food ON favorites.food_id = food.id
                WHERE favorites.user_id = :user_id
            """), {"user_id": user_id})
            result = await session.execute(text("""
                SELECT id, food_id, add_time
                FROM favorites
                WHERE user_id = :user_id
                ORDER BY add_time, id
            """), {"user_id": user_id})

            favorites = []
            for row in result.fetchall():
                # food_per_user keeps one row per food
                if row.food_id not in food:
                    raise LookupError(MERGE_ERROR)
                favorites.append(Favorite(food=food[row.food_id], favorite=row))
            return favorites, None

        except (SQLAlchemyError, LookupError) as e:
            logging.error(f"Error getting favorites: {e}")
            return None, "Failed to load favorites"
        finally:
            await session.close()

    async def is_user_favorite(self, user_id: int, food_id: int) -> tuple[bool, str | None]:
        query = text("""
            SELECT EXISTS (
                SELECT 1 FROM favorites
                WHERE user_id = :user_id AND food_id = :food_id
            )
        """)
        return await self._is_true(query, {"user_id": user_id, "food_id": food_id})

    async def add_user_favorite(self, user_id: int, food_id: int) -> tuple[int | None, str | None]:
        query = text("""
            INSERT INTO favorites (user_id, food_id, add_time)
            VALUES (:user_id, :food_id, CURRENT_TIMESTAMP)
            RETURNING id
        """)
        return await self._insert(
            query, {"user_id": user_id, "food_id": food_id},
            rejected="Food is already in favorites or does not exist"
        )

    async def delete_user_favorite(self, user_id: int, favorite_id: int) -> tuple[bool, str | None]:
        query = text("DELETE FROM favorites WHERE id = :favorite_id AND user_id = :user_id")
        return await self._modify(query, {"favorite_id": favorite_id, "user_id": user_id})

    # Cart

    async def get_cart_food(self, customer_id: int):
        query = text(f"""
            SELECT {FOOD_COLUMNS}
            FROM cart
            JOIN food ON cart.food_id = food.id
            WHERE cart.customer_id = :customer_id
        """)
        return await self._fetch_all(query, {"customer_id": customer_id})

    async def get_user_cart(self, customer_id: int, sort_by: CartSort = CartSort.ADD_TIME,
                            order: SortOrder = SortOrder.ASC) -> tuple[Cart | None, str | None]:
        """Cart items merged with their food, line totals and the cart total"""
        session = await self.get_session()
        try:
            cart = await self._user_cart(session, customer_id, sort_by, order)
            return cart, None
        except (SQLAlchemyError, LookupError) as e:
            logging.error(f"Error getting cart: {e}")
            return None, "Failed to load cart"
        finally:
            await session.close()

    async def _user_cart(self, session, customer_id: int, sort_by: CartSort = CartSort.ADD_TIME,
                         order: SortOrder = SortOrder.ASC) -> Cart:
        food = await self._query_food(session, text(f"""
            SELECT {FOOD_COLUMNS}
            FROM cart
            JOIN food ON cart.food_id = food.id
            WHERE cart.customer_id = :customer_id
        """), {"customer_id": customer_id})
        result = await session.execute(text("""
            SELECT id, food_id, count, add_time
            FROM cart
            WHERE customer_id = :customer_id
        """), {"customer_id": customer_id})

        items = []
        for row in sort_rows(result.fetchall(), sort_by.value, order):
            # food_per_customer keeps one row per food
            if row.food_id not in food:
                raise LookupError(MERGE_ERROR)
            item_food = food[row.food_id]
            items.append(CartItem(
                food=item_food,
                item=row,
                total_price=line_total(item_food.food.price, row.count)
            ))
        return Cart(items=items, total_price=sum_totals(items))

    async def is_in_user_cart(self, customer_id: int, food_id: int) -> tuple[bool, str | None]:
        query = text("""
            SELECT EXISTS (
                SELECT 1 FROM cart
                WHERE customer_id = :customer_id AND food_id = :food_id
            )
        """)
        return await self._is_true(query, {"customer_id": customer_id, "food_id": food_id})

    async def add_cart_item(self, customer_id: int, food_id: int,
                            count: int = 1) -> tuple[int | None, str | None]:
        """Add food to the cart or increase its count if it is already there"""
        if not validate_count(count):
            return None, "Count must be greater than zero"

        query = text("""
            INSERT INTO cart (customer_id, food_id, count, add_time)
            VALUES (:customer_id, :food_id, :count, CURRENT_TIMESTAMP)
            ON CONFLICT (customer_id, food_id)
            DO UPDATE SET count = cart.count + excluded.count
            RETURNING id
        """)
        return await self._insert(query, {
            "customer_id": customer_id,
            "food_id": food_id,
            "count": count
        }, rejected="Food or customer not found")

    async def delete_cart_item(self, customer_id: int, cart_id: int) -> tuple[bool, str | None]:
        query = text("DELETE FROM cart WHERE id = :cart_id AND customer_id = :customer_id")
        return await self._modify(query, {"cart_id": cart_id, "customer_id": customer_id})

    # Orders

    async def add_order(self, customer_id: int, address_id: int) -> tuple[int | None, str | None]:
        """Insert an order, the address must belong to the customer"""
        query = text("""
            INSERT INTO orders (customer_id, address_id, create_time)
            VALUES (
                :customer_id,
                (
                    SELECT id
                    FROM addresses
                    WHERE id = :address_id AND customer_id = :customer_id
                ),
                CURRENT_TIMESTAMP
            )
            RETURNING id
        """)
        order_id, error = await self._insert(
            query, {"customer_id": customer_id, "address_id": address_id},
            rejected="Address not found"
        )
        if order_id:
            logging.info(f"New order {order_id} for customer {customer_id}")
        return order_id, error

    async def make_order_from_cart(self, customer_id: int,
                                   address_id: int) -> tuple[int | None, str | None]:
        """Turn the whole cart into an order and empty the cart"""
        session = await self.get_session()
        try:
            cart = await self._user_cart(session, customer_id)
            if not cart.items:
                return None, "Cart is empty"

            query = text("""
                INSERT INTO orders (customer_id, address_id, create_time)
                VALUES (
                    :customer_id,
                    (
                        SELECT id
                        FROM addresses
                        WHERE id = :address_id AND customer_id = :customer_id
                    ),
                    CURRENT_TIMESTAMP
                )
                RETURNING id
            """)
            result = await session.execute(query, {
                "customer_id": customer_id,
                "address_id": address_id
            })
            order_id = result.scalar_one()

            query = text("""
                INSERT INTO orders_food (order_id, food_id, count)
                VALUES (:order_id, :food_id, :count)
            """)
            for cart_item in cart.items:
                await session.execute(query, {
                    "order_id": order_id,
                    "food_id": cart_item.item.food_id,
                    "count": cart_item.item.count
                })

            await session.execute(
                text("DELETE FROM cart WHERE customer_id = :customer_id"),
                {"customer_id": customer_id}
            )
            await session.commit()

            logging.info(f"Order {order_id} created from cart of customer {customer_id}")
            return order_id, None

        except IntegrityError as e:
            logging.warning(f"Order rejected: {e.orig}")
            await session.rollback()
            return None, "Address not found"
        except (SQLAlchemyError, LookupError) as e:
            logging.error(f"Error making order: {e}")
            await session.rollback()
            return None, "Failed to make order"
        finally:
            await session.close()

    async def get_order_food(self, order_id: int):
        query = text(f"""
            SELECT {FOOD_COLUMNS}
            FROM orders_food
            JOIN food ON orders_food.food_id = food.id
            WHERE orders_food.order_id = :order_id
        """)
        return await self._fetch_all(query, {"order_id": order_id})

    async def get_order_items(self, order_id: int):
        """Raw orders_food rows, most recently added first"""
        query = text("""
            SELECT *
            FROM orders_food
            WHERE order_id = :order_id
            ORDER BY id DESC
        """)
        return await self._fetch_all(query, {"order_id": order_id})

    async def get_orders(self, orders_filter: OrdersFilter = OrdersFilter.ALL):
        query = text(f"SELECT {ORDER_COLUMNS} FROM orders ORDER BY create_time, id")
        return await self._get_orders(query, {}, orders_filter)

    async def get_user_orders(self, customer_id: int, orders_filter: OrdersFilter = OrdersFilter.ALL):
        query = text(f"""
            SELECT {ORDER_COLUMNS}
            FROM orders
            WHERE customer_id = :customer_id
            ORDER BY create_time, id
        """)
        return await self._get_orders(query, {"customer_id": customer_id}, orders_filter)

    async def _get_orders(self, query, params: dict,
                          orders_filter: OrdersFilter) -> tuple[list[Order] | None, str | None]:
        session = await self.get_session()
        try:
            result = await session.execute(query, params)
            orders = []
            for row in result.fetchall():
                if not order_fits(row, orders_filter):
                    continue
                items = await self._order_items(session, row.id)
                orders.append(Order(
                    order=row,
                    customer=await self._row_by_id(session, "users", row.customer_id),
                    address=await self._row_by_id(session, "addresses", row.address_id),
                    rider=await self._row_by_id(session, "users", row.rider_id)
                    if row.rider_id is not None else None,
                    items=items,
                    total_price=sum_totals(items),
                    feedback=await self._order_feedback(session, row.id)
                ))
            return orders, None

        except (SQLAlchemyError, LookupError) as e:
            logging.error(f"Error getting orders: {e}")
            return None, "Failed to load orders"
        finally:
            await session.close()

    async def _row_by_id(self, session, table: str, row_id: int):
        columns = USER_COLUMNS if table == "users" else "*"
        result = await session.execute(
            text(f"SELECT {columns} FROM {table} WHERE id = :id"), {"id": row_id}
        )
        row = result.fetchone()
        if row is None:
            raise LookupError(MERGE_ERROR)
        return row

    async def _order_items(self, session, order_id: int) -> list[OrderItem]:
        food = await self._query_food(session, text(f"""
            SELECT {FOOD_COLUMNS}
            FROM orders_food
            JOIN food ON orders_food.food_id = food.id
            WHERE orders_food.order_id = :order_id
        """), {"order_id": order_id})
        result = await session.execute(text("""
            SELECT *
            FROM orders_food
            WHERE order_id = :order_id
            ORDER BY id DESC
        """), {"order_id": order_id})

        items = []
        for row in result.fetchall():
            # food_per_order keeps one row per food
            if row.food_id not in food:
                raise LookupError(MERGE_ERROR)
            item_food = food[row.food_id]
            items.append(OrderItem(
                food=item_food,
                item=row,
                total_price=line_total(item_food.food.price, row.count)
            ))
        return items

    async def _order_feedback(self, session, order_id: int):
        result = await session.execute(
            text("SELECT id, order_id, rating, comment FROM feedbacks WHERE order_id = :order_id"),
            {"order_id": order_id}
        )
        return result.fetchone()

    async def take_order(self, rider_id: int, order_id: int) -> tuple[bool, str | None]:
        """Assign a rider to an order nobody has taken yet"""
        query = text("""
            UPDATE orders
            SET rider_id = :rider_id
            WHERE id = :order_id AND rider_id IS NULL
        """)
        taken, error = await self._modify(
            query, {"rider_id": rider_id, "order_id": order_id},
            rejected="Rider not found"
        )
        if taken:
            logging.info(f"Order {order_id} taken by rider {rider_id}")
        return taken, error

    async def complete_order(self, rider_id: int, order_id: int) -> tuple[bool, str | None]:
        query = text("""
            UPDATE orders
            SET completed_time = CURRENT_TIMESTAMP
            WHERE id = :order_id AND rider_id = :rider_id AND completed_time IS NULL
        """)
        completed, error = await self._modify(query, {"rider_id": rider_id, "order_id": order_id})
        if completed:
            logging.info(f"Order {order_id} completed by rider {rider_id}")
        return completed, error

    async def delete_untaken_order(self, customer_id: int, order_id: int) -> tuple[bool, str | None]:
        query = text("""
            DELETE FROM orders
            WHERE id = :order_id AND customer_id = :customer_id AND rider_id IS NULL
        """)
        return await self._modify(query, {"customer_id": customer_id, "order_id": order_id})

    # Feedback

    async def add_feedback(self, customer_id: int, order_id: int, rating: int | None = None,
                           comment: str | None = None) -> tuple[int | None, str | None]:
        """Leave feedback on a completed order owned by the customer"""
        if not validate_feedback(rating, comment):
            return None, "Either rating or comment must be provided"
        if not validate_rating(rating):
            return None, "Rating must be between 0 and 5"

        session = await self.get_session()
        try:
            query = text("""
                SELECT id
                FROM orders
                WHERE id = :order_id
                AND customer_id = :customer_id
                AND completed_time IS NOT NULL
            """)
            result = await session.execute(query, {
                "order_id": order_id,
                "customer_id": customer_id
            })
            if not result.fetchone():
                logging.warning(f"No completed order {order_id} for customer {customer_id}")
                return None, "There is no completed order with such ID owned by the user"

            if await self._order_feedback(session, order_id):
                return None, "Feedback for this order already exists"

            query = text("""
                INSERT INTO feedbacks (order_id, rating, comment)
                VALUES (:order_id, :rating, :comment)
                RETURNING id
            """)
            result = await session.execute(query, {
                "order_id": order_id,
                "rating": rating,
                "comment": comment
            })
            feedback_id = result.scalar_one()
            await session.commit()

            logging.info(f"Feedback {feedback_id} added to order {order_id}")
            return feedback_id, None

        except IntegrityError as e:
            logging.warning(f"Feedback rejected: {e.orig}")
            await session.rollback()
            return None, "Feedback could not be saved"
        except SQLAlchemyError as e:
            logging.error(f"Error adding feedback: {e}")
            await session.rollback()
            return None, "Failed to save feedback"
        finally:
            await session.close()

db = Database()
