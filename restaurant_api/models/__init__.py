from restaurant_api.models.restaurant import Restaurant
from restaurant_api.models.menu_item import MenuItem
from restaurant_api.models.table import DiningTable
from restaurant_api.models.coupon import Coupon, CouponRedemption
from restaurant_api.models.order import Order
from restaurant_api.models.order_item import OrderItem
from restaurant_api.models.inventory import InventoryItem
from restaurant_api.models.promotion import Promotion
