# Import tất cả các model
from app.models.user import User
from app.models.plan import Plan
from app.models.user_subscription import UserSubscription
from app.models.notification import Notification, NotificationType, NotificationStatus
from app.models.user_notification import UserNotification, DeliveryStatus
from app.models.admin import Admin

__all__ = [
    "User",
    "Plan",
    "UserSubscription",
    "Notification",
    "NotificationType",
    "NotificationStatus",
    "UserNotification",
    "DeliveryStatus",
    "Admin",
]
