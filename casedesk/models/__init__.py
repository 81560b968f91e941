from .base import Record, utcnow
from .admin import Admin, Actor, SYSTEM_ACTOR
from .customer import Customer, NotificationPreferences
from .case import ProductCase, CASE_STATUSES, CLOSED_STATUSES, PAYMENT_STATUSES, is_open
from .quick_case import QuickCase, PromotionMarker
from .interaction import InteractionHistory, INTERACTION_TYPES
from .reminder import Reminder
from .settings import Settings
