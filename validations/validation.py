from decimal import Decimal, InvalidOperation

def validate_username(username: str) -> bool:
    return bool(username) and len(username) <= 64

def validate_count(count: int) -> bool:
    return count > 0

def validate_rating(rating) -> bool:
    return rating is None or 0 <= rating <= 5

def validate_feedback(rating, comment) -> bool:
    return rating is not None or bool(comment)

def validate_price(price) -> bool:
    # numeric(7, 2)
    try:
        price = Decimal(str(price))
    except InvalidOperation:
        return False
    if not price.is_finite():
        return False
    return Decimal(0) <= price < Decimal(100000) and price == price.quantize(Decimal("0.01"))
