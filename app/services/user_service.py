import logging
import uuid
from datetime import timedelta
from typing import List, Optional, Tuple

from redis.exceptions import RedisError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.dto.user_dto import (
    AdminUserCreate,
    AdminUserUpdate,
    DeviceConflictEntry,
    UserAnalytics,
    UserListItem,
    UserProfileUpdate,
    UserRead,
)
from app.exceptions.base_exception import ConflictException, NotFoundException, ValidationException
from app.models.user import User
from app.repositories.subscription_repository import SubscriptionRepository
from app.repositories.user_repository import UserRepository
from app.services.device_binding_service import DeviceBindingService, DeviceResetReason
from app.services.presence_service import LiveUserCounter
from app.utils.phone import normalize_whatsapp_number
from app.utils.security import hash_password
from app.utils.time import get_utc_now, start_of_day

logger = logging.getLogger(__name__)

ABANDONED_DEVICE_DAYS = 30


class UserService:
    """
    Service xử lý các thao tác liên quan đến người dùng: quản trị của admin và
    hồ sơ của chính người dùng.
    """

    @staticmethod
    async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
        user = await UserRepository.get_by_id(db, user_id)
        if not user:
            raise NotFoundException("User not found", "USER_NOT_FOUND")
        return user

    @staticmethod
    async def list_users(
        db: AsyncSession,
        search: Optional[str] = None,
        is_blocked: Optional[bool] = None,
        has_active_plan: Optional[bool] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[UserListItem], int]:
        users, total = await UserRepository.list_users(db, search, is_blocked, has_active_plan, skip, limit)
        active = await SubscriptionRepository.get_active_for_users(db, [u.id for u in users])

        items = []
        for user in users:
            item = UserListItem.model_validate(user)
            sub = active.get(user.id)
            if sub is not None:
                item.active_plan_title = sub.plan.title if sub.plan else None
                item.active_plan_expiry = sub.expiry_date
            items.append(item)
        return items, total

    @staticmethod
    def _clean_identity(email: Optional[str], whatsapp: Optional[str], mobile: Optional[str]) -> dict:
        fields = {}
        if email:
            fields["email"] = email.lower()
        if whatsapp:
            normalized = normalize_whatsapp_number(whatsapp)
            if not normalized:
                raise ValidationException("Valid WhatsApp number is required")
            fields["whatsapp"] = normalized
        if mobile:
            fields["mobile"] = mobile.strip()
        return fields

    @staticmethod
    async def _ensure_unique(db: AsyncSession, fields: dict, exclude_id: Optional[uuid.UUID] = None) -> None:
        lookups = (
            ("email", UserRepository.get_by_email),
            ("whatsapp", UserRepository.get_by_whatsapp),
            ("mobile", UserRepository.get_by_mobile),
        )
        for key, lookup in lookups:
            if key in fields:
                existing = await lookup(db, fields[key])
                if existing and existing.id != exclude_id:
                    raise ConflictException(f"User with this {key} already exists", "DUPLICATE_IDENTITY")

    @staticmethod
    async def create_user(db: AsyncSession, data: AdminUserCreate) -> User:
        """Admin tạo người dùng; cần ít nhất một kênh định danh."""
        fields = UserService._clean_identity(data.email, data.whatsapp, data.mobile)
        if not fields:
            raise ValidationException("Email, WhatsApp or mobile is required", "IDENTITY_REQUIRED")
        await UserService._ensure_unique(db, fields)

        if data.password:
            fields["hashed_password"] = hash_password(data.password)
        try:
            user = await UserRepository.create(
                db,
                full_name=data.full_name,
                profile_pic=data.profile_pic,
                **fields,
            )
        except IntegrityError:
            await db.rollback()
            raise ConflictException("User already exists", "DUPLICATE_IDENTITY")
        logger.info(f"Admin created user {user.id}")
        return user

    @staticmethod
    async def update_user(db: AsyncSession, user_id: uuid.UUID, data: AdminUserUpdate) -> User:
        user = await UserService.get_user(db, user_id)
        fields = UserService._clean_identity(data.email, data.whatsapp, data.mobile)
        await UserService._ensure_unique(db, fields, exclude_id=user.id)

        for key, value in fields.items():
            setattr(user, key, value)
        if data.full_name is not None:
            user.full_name = data.full_name
        if data.profile_pic is not None:
            user.profile_pic = data.profile_pic
        if data.password:
            user.hashed_password = hash_password(data.password)
        return await UserRepository.save(db, user)

    @staticmethod
    async def delete_user(db: AsyncSession, user_id: uuid.UUID) -> None:
        user = await UserService.get_user(db, user_id)
        await UserRepository.delete(db, user)

    @staticmethod
    async def set_blocked(db: AsyncSession, user_id: uuid.UUID, blocked: bool) -> User:
        user = await UserService.get_user(db, user_id)
        user.is_blocked = blocked
        logger.info(f"User {user.id} {'blocked' if blocked else 'unblocked'} by admin")
        return await UserRepository.save(db, user)

    @staticmethod
    async def reset_device(db: AsyncSession, user_id: uuid.UUID) -> User:
        user = await UserService.get_user(db, user_id)
        return await DeviceBindingService.reset_device_binding(db, user, DeviceResetReason.ADMIN_ACTION)

    @staticmethod
    async def allow_new_device(db: AsyncSession, user_id: uuid.UUID) -> User:
        """Duyệt yêu cầu đổi thiết bị; không có yêu cầu nào đang chờ thì báo lỗi."""
        user = await UserService.get_user(db, user_id)
        if not user.device_change_requested:
            raise ValidationException("No pending device change request", "NO_PENDING_REQUEST")
        return await DeviceBindingService.reset_device_binding(db, user, DeviceResetReason.ADMIN_ACTION)

    @staticmethod
    async def get_device_conflicts(db: AsyncSession) -> List[DeviceConflictEntry]:
        """
        Liệt kê các trường hợp cần admin xem xét:
        - MULTIPLE_USERS: một thiết bị gắn với nhiều tài khoản
        - ABANDONED_DEVICE: thiết bị không đăng nhập quá 30 ngày
        - DEVICE_CHANGE_REQUESTED: người dùng đang chờ đổi thiết bị
        """
        conflicts: List[DeviceConflictEntry] = []

        shared = await UserRepository.find_shared_devices(db)
        for device_id, users in shared.items():
            conflicts.append(DeviceConflictEntry(
                type="MULTIPLE_USERS",
                device_id=device_id,
                users=[UserRead.model_validate(u) for u in users],
            ))

        cutoff = get_utc_now() - timedelta(days=ABANDONED_DEVICE_DAYS)
        for user in await UserRepository.find_abandoned_bindings(db, cutoff):
            conflicts.append(DeviceConflictEntry(
                type="ABANDONED_DEVICE",
                device_id=user.device_id,
                users=[UserRead.model_validate(user)],
            ))

        for user in await UserRepository.find_pending_device_changes(db):
            conflicts.append(DeviceConflictEntry(
                type="DEVICE_CHANGE_REQUESTED",
                device_id=user.device_id,
                users=[UserRead.model_validate(user)],
                requested_at=user.device_change_requested_at,
            ))
        return conflicts

    @staticmethod
    async def get_analytics(db: AsyncSession, counter: Optional[LiveUserCounter] = None) -> UserAnalytics:
        now = get_utc_now()
        total = await UserRepository.count_users(db)
        live = await UserRepository.count_users(
            db,
            User.last_activity >= start_of_day(now),
            User.is_blocked == False,  # noqa: E712
        )
        blocked = await UserRepository.count_users(db, User.is_blocked == True)  # noqa: E712
        subscribed = len(await UserRepository.list_subscribed_ids(db, now))

        online = 0
        if counter is not None:
            try:
                online = await counter.count()
            except RedisError as e:
                logger.warning(f"Presence counter unavailable: {e}")

        return UserAnalytics(
            total_users=total,
            live_users=live,
            online_users=online,
            subscribed_users=subscribed,
            blocked_users=blocked,
            unsubscribed_users=max(0, total - subscribed),
        )

    # ---- Hồ sơ của chính người dùng ----

    @staticmethod
    async def update_profile(db: AsyncSession, user: User, data: UserProfileUpdate) -> User:
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(user, key, value)
        user.last_activity = get_utc_now()
        return await UserRepository.save(db, user)

    @staticmethod
    async def add_push_token(db: AsyncSession, user: User, token: str) -> User:
        tokens = list(user.firebase_tokens or [])
        if token not in tokens:
            user.firebase_tokens = tokens + [token]
        return await UserRepository.save(db, user)

    @staticmethod
    async def remove_push_token(db: AsyncSession, user: User, token: str) -> User:
        await UserRepository.remove_firebase_tokens(db, user, [token])
        await db.refresh(user)
        return user

    @staticmethod
    async def request_device_change(db: AsyncSession, user: User) -> User:
        return await DeviceBindingService.request_device_change(db, user)
