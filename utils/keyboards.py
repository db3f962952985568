"""Inline keyboard utilities for the SMM Storefront Bot"""

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from models import ServiceKind
from utils.constants import CallbackData, ORDER_CALLBACK_BY_SERVICE, SERVICE_EMOJIS


def main_menu_keyboard():
    """Main menu shown on /start and Home"""
    return InlineKeyboardMarkup([
        [InlineKeyboardButton("💰 Add Fund", callback_data=CallbackData.ADD_FUND)],
        [
            InlineKeyboardButton(f"{SERVICE_EMOJIS[ServiceKind.LIKES]} Instagram Likes",
                                 callback_data=CallbackData.SERVICE_LIKES),
            InlineKeyboardButton(f"{SERVICE_EMOJIS[ServiceKind.VIEWS]} Instagram Views",
                                 callback_data=CallbackData.SERVICE_VIEWS),
        ],
        [
            InlineKeyboardButton("📦 My Orders", callback_data=CallbackData.MY_ORDERS),
            InlineKeyboardButton("👤 Profile", callback_data=CallbackData.MY_PROFILE),
        ],
        [InlineKeyboardButton("🆘 Support", callback_data=CallbackData.SUPPORT)],
    ])


def home_keyboard():
    return InlineKeyboardMarkup([
        [InlineKeyboardButton("🏠 Home", callback_data=CallbackData.HOME)],
    ])


def service_keyboard(service: ServiceKind):
    """Order button under a service description"""
    return InlineKeyboardMarkup([
        [InlineKeyboardButton("🛒 Order", callback_data=ORDER_CALLBACK_BY_SERVICE[service])],
        [InlineKeyboardButton("🏠 Home", callback_data=CallbackData.HOME)],
    ])


def confirm_order_keyboard():
    return InlineKeyboardMarkup([
        [
            InlineKeyboardButton("✅ Confirm", callback_data=CallbackData.CONFIRM_ORDER),
            InlineKeyboardButton("❌ Cancel", callback_data=CallbackData.CANCEL_ORDER),
        ],
    ])


def cancel_keyboard():
    """Cancel button shown while collecting order input"""
    return InlineKeyboardMarkup([
        [InlineKeyboardButton("❌ Cancel", callback_data=CallbackData.CANCEL_ORDER)],
    ])
