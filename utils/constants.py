"""Constants for the SMM Storefront Bot"""

from dataclasses import dataclass
from models import ServiceKind

# ==================== SERVICE CATALOGUE ====================


@dataclass(frozen=True)
class ServiceBounds:
    """Fixed per-service quantity limits"""
    minimum: int
    maximum: int


SERVICE_BOUNDS = {
    ServiceKind.LIKES: ServiceBounds(minimum=500, maximum=50000),
    ServiceKind.VIEWS: ServiceBounds(minimum=1000, maximum=1000000),
}

SERVICE_TITLES = {
    ServiceKind.LIKES: "Instagram Likes",
    ServiceKind.VIEWS: "Instagram Views",
}

SERVICE_EMOJIS = {
    ServiceKind.LIKES: "💞",
    ServiceKind.VIEWS: "👀",
}

# Substring a target link must contain
INSTAGRAM_POST_MARKER = "instagram.com/p/"

# Number of orders listed by "My Orders"
RECENT_ORDERS_LIMIT = 10


# ==================== SETTINGS KEYS ====================

class SettingKeys:
    PRICE_LIKES_PER_1K = "price_like_per_1k"
    PRICE_VIEWS_PER_1K = "price_view_per_1k"
    SERVICE_ID_LIKES = "service_likes"
    SERVICE_ID_VIEWS = "service_views"
    GROUP_CHAT_ID = "group_chat_id"


PRICE_SETTING_BY_SERVICE = {
    ServiceKind.LIKES: SettingKeys.PRICE_LIKES_PER_1K,
    ServiceKind.VIEWS: SettingKeys.PRICE_VIEWS_PER_1K,
}

SERVICE_ID_SETTING_BY_SERVICE = {
    ServiceKind.LIKES: SettingKeys.SERVICE_ID_LIKES,
    ServiceKind.VIEWS: SettingKeys.SERVICE_ID_VIEWS,
}


# ==================== CALLBACK DATA ====================

class CallbackData:
    # Main menu
    ADD_FUND = "ADD_FUND"
    SERVICE_LIKES = "SERVICE_LIKES"
    SERVICE_VIEWS = "SERVICE_VIEWS"
    MY_ORDERS = "MY_ORDERS"
    MY_PROFILE = "MY_PROFILE"
    SUPPORT = "SUPPORT"
    HOME = "HOME"

    # Order dialog
    ORDER_LIKES = "ORDER_LIKES"
    ORDER_VIEWS = "ORDER_VIEWS"
    CONFIRM_ORDER = "CONFIRM_ORDER"
    CANCEL_ORDER = "CANCEL_ORDER"


SERVICE_BY_CALLBACK = {
    CallbackData.SERVICE_LIKES: ServiceKind.LIKES,
    CallbackData.SERVICE_VIEWS: ServiceKind.VIEWS,
    CallbackData.ORDER_LIKES: ServiceKind.LIKES,
    CallbackData.ORDER_VIEWS: ServiceKind.VIEWS,
}

ORDER_CALLBACK_BY_SERVICE = {
    ServiceKind.LIKES: CallbackData.ORDER_LIKES,
    ServiceKind.VIEWS: CallbackData.ORDER_VIEWS,
}

STATUS_EMOJIS = {
    "pending": "⏳",
    "processing": "🔄",
    "completed": "✅",
    "partial": "🟡",
    "cancelled": "❌",
}
