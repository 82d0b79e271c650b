from app.models.category import Category
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.product import Product, ProductVariant
from app.models.wilaya import Wilaya

__all__ = ["Category", "Order", "OrderItem", "Product", "ProductVariant", "Wilaya"]
