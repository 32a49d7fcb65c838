# Import tất cả các controller
from app.controllers.auth_controller import router as auth_router
from app.controllers.auth_controller import admin_auth_router
from app.controllers.user_controller import router as user_router
from app.controllers.subscription_controller import router as subscription_router
from app.controllers.admin_controller import router as admin_router
from app.controllers.plan_controller import router as plan_router
from app.controllers.notification_controller import router as notification_router

__all__ = [
    "auth_router",
    "admin_auth_router",
    "user_router",
    "subscription_router",
    "admin_router",
    "plan_router",
    "notification_router",
]
