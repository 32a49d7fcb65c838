import logging
import math
import time
import uuid
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.configs.settings import settings
from app.dto.subscription_dto import (
    BestsellerPlans,
    BulkAssignResult,
    BulkAssignRow,
    BulkAssignRowResult,
    EarningsAnalytics,
    MySubscriptionRead,
    OrderRead,
    PlanPurchaseStat,
    SubscriptionAnalytics,
    SubscriptionRead,
    UsageRead,
    VerifyPaymentRequest,
)
from app.dto.plan_dto import PlanRead
from app.exceptions.base_exception import (
    AppException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    PaymentException,
    UsageLimitException,
    ValidationException,
)
from app.models.admin import Admin
from app.models.notification import NotificationType
from app.models.user import User
from app.models.user_subscription import UserSubscription
from app.repositories.plan_repository import PlanRepository
from app.repositories.subscription_repository import SubscriptionRepository
from app.repositories.user_repository import UserRepository
from app.services.notification_service import NotificationService
from app.services.payment_service import PAYMENT_PROVIDER, PaymentService
from app.utils.time import add_months_clamped, get_utc_now, next_midnight, start_of_day

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class SubscriptionService:
    """
    Điểm duy nhất tạo gói đăng ký active cho người dùng.

    Mỗi lần kích hoạt gồm: tắt gói active cũ, thêm gói mới, cập nhật con trỏ
    active_subscription_id trên user, tất cả trong một transaction. Index unique
    từng phần trên (user_id, is_active=True) là cơ chế thực sự chặn hai lần kích hoạt
    song song; bên thua nhận ConflictException và có thể thử lại.
    """

    @staticmethod
    async def activate_subscription(
        db: AsyncSession,
        user_id: uuid.UUID,
        plan_id: uuid.UUID,
        payment_id: Optional[str] = None,
        payment_provider: Optional[str] = None
    ) -> UserSubscription:
        """
        Kích hoạt gói `plan_id` cho user.

        Raises:
            NotFoundException: PLAN_NOT_FOUND (không có hoặc đã tắt), USER_NOT_FOUND
            ConflictException: CONCURRENT_ACTIVATION_CONFLICT khi thua cuộc đua ghi
        """
        plan = await PlanRepository.get_by_id(db, plan_id)
        if not plan or not plan.is_active:
            raise NotFoundException("Plan not found", "PLAN_NOT_FOUND")
        user = await UserRepository.get_by_id(db, user_id)
        if not user:
            raise NotFoundException("User not found", "USER_NOT_FOUND")

        start_date = get_utc_now()
        try:
            deactivated = await SubscriptionRepository.deactivate_active_for_user(db, user_id)
            subscription = UserSubscription(
                user_id=user_id,
                plan=plan,
                start_date=start_date,
                expiry_date=add_months_clamped(start_date, plan.duration_in_months),
                is_active=True,
                payment_id=payment_id,
                payment_provider=payment_provider,
                usage_count=0,
                usage_reset_at=next_midnight(start_date),
            )
            await SubscriptionRepository.add(db, subscription)
            await UserRepository.set_active_subscription(db, user_id, subscription.id)
            await db.commit()
            subscription_id = subscription.id
        except IntegrityError:
            await db.rollback()
            logger.warning(f"Concurrent activation rejected for user {user_id}, plan {plan_id}")
            raise ConflictException(
                "Another subscription activation is in progress for this user, please retry",
                "CONCURRENT_ACTIVATION_CONFLICT",
            )

        logger.info(
            f"Activated subscription {subscription_id} (plan {plan.code}) for user {user_id}, "
            f"expires {subscription.expiry_date.isoformat()}, superseded {deactivated}"
        )
        await NotificationService.notify_user_safely(
            db,
            user_id,
            "Subscription Activated",
            f"Your {plan.title} subscription is active until {subscription.expiry_date.strftime('%d %b %Y')}",
            NotificationType.SUBSCRIPTION_ACTIVATED,
        )
        return await SubscriptionRepository.get_by_id(db, subscription_id)

    @staticmethod
    async def assign_plan_manually(db: AsyncSession, admin: Admin, user_id: uuid.UUID, plan_id: uuid.UUID) -> UserSubscription:
        """Admin gán gói không qua thanh toán; cùng bảo đảm như luồng mua."""
        admin_email = admin.email
        subscription = await SubscriptionService.activate_subscription(db, user_id, plan_id, payment_provider="manual")
        logger.info(f"Admin {admin_email} assigned plan {plan_id} to user {user_id}")
        return subscription

    @staticmethod
    async def _find_user_for_row(db: AsyncSession, row: BulkAssignRow) -> Optional[User]:
        if row.email:
            user = await UserRepository.get_by_email(db, row.email)
            if user:
                return user
        if row.mobile:
            user = await UserRepository.get_by_mobile(db, row.mobile)
            if user:
                return user
            return await UserRepository.get_by_whatsapp(db, row.mobile)
        return None

    @staticmethod
    async def bulk_assign(db: AsyncSession, admin: Admin, rows: List[BulkAssignRow]) -> BulkAssignResult:
        """
        Gán gói hàng loạt từ các dòng đã parse. Mỗi dòng độc lập, lỗi dòng này không dừng dòng khác.
        """
        admin_email = admin.email
        results: List[BulkAssignRowResult] = []
        for index, row in enumerate(rows, start=1):
            identifier = row.email or row.mobile
            try:
                if not identifier:
                    raise ValidationException("Email or mobile is required")
                user = await SubscriptionService._find_user_for_row(db, row)
                if not user:
                    raise NotFoundException("User not found", "USER_NOT_FOUND")
                plan = await PlanRepository.get_by_code(db, row.plan_code)
                if not plan or not plan.is_active:
                    raise NotFoundException(f"Plan '{row.plan_code.upper()}' not found", "PLAN_NOT_FOUND")
                subscription = await SubscriptionService.activate_subscription(
                    db, user.id, plan.id, payment_provider="bulk_import"
                )
                results.append(BulkAssignRowResult(
                    row=index, identifier=identifier, success=True,
                    message="Subscription assigned", subscription_id=subscription.id,
                ))
            except AppException as e:
                results.append(BulkAssignRowResult(row=index, identifier=identifier, success=False, message=e.message))

        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Admin {admin_email} bulk assigned {succeeded}/{len(rows)} rows")
        return BulkAssignResult(total=len(rows), succeeded=succeeded, failed=len(rows) - succeeded, results=results)

    # ---- Luồng mua của người dùng ----

    @staticmethod
    async def create_subscription_order(db: AsyncSession, user: User, plan_id: uuid.UUID) -> OrderRead:
        plan = await PlanRepository.get_by_id(db, plan_id)
        if not plan or not plan.is_active:
            raise NotFoundException("Plan not found", "PLAN_NOT_FOUND")

        receipt = f"sub_{str(user.id)[-6:]}_{str(int(time.time() * 1000))[-6:]}"
        order = await PaymentService.create_order(
            amount_minor=plan.discounted_price * 100,
            receipt=receipt,
            notes={"userId": str(user.id), "planId": str(plan.id)},
        )
        return OrderRead(
            order_id=order["id"],
            amount=order.get("amount", plan.discounted_price * 100),
            currency=order.get("currency", settings.PAYMENT_CURRENCY),
            receipt=receipt,
            key_id=PaymentService.public_key_id(),
            plan=PlanRead.model_validate(plan),
        )

    @staticmethod
    async def verify_and_activate(db: AsyncSession, user: User, data: VerifyPaymentRequest) -> UserSubscription:
        """
        Xác minh chữ ký trước, chỉ khi hợp lệ mới kích hoạt gói.

        Một payment_id chỉ dùng được một lần, và order phải được tạo cho chính user và
        gói đang yêu cầu (theo notes lúc tạo order).

        Raises:
            PaymentException: PAYMENT_VERIFICATION_FAILED, PAYMENT_ORDER_MISMATCH
            ConflictException: PAYMENT_ALREADY_USED
        """
        PaymentService.verify_payment(data.razorpay_order_id, data.razorpay_payment_id, data.razorpay_signature)
        if await SubscriptionRepository.get_by_payment_id(db, data.razorpay_payment_id):
            logger.warning(f"Replayed payment {data.razorpay_payment_id} for user {user.id}")
            raise ConflictException("This payment has already been used", "PAYMENT_ALREADY_USED")

        order = await PaymentService.fetch_order(data.razorpay_order_id)
        notes = order.get("notes") or {}
        if notes.get("userId") != str(user.id) or notes.get("planId") != str(data.plan_id):
            logger.warning(f"Order {data.razorpay_order_id} does not match user {user.id} / plan {data.plan_id}")
            raise PaymentException("Payment order does not match this plan", "PAYMENT_ORDER_MISMATCH")

        return await SubscriptionService.activate_subscription(
            db, user.id, data.plan_id,
            payment_id=data.razorpay_payment_id,
            payment_provider=PAYMENT_PROVIDER,
        )

    @staticmethod
    async def get_my_subscription(db: AsyncSession, user_id: uuid.UUID) -> MySubscriptionRead:
        subscription = await SubscriptionRepository.get_active_for_user(db, user_id)
        if not subscription:
            return MySubscriptionRead()
        remaining = (subscription.expiry_date - get_utc_now()).total_seconds()
        return MySubscriptionRead(
            subscription=SubscriptionRead.model_validate(subscription),
            plan_title=subscription.plan.title if subscription.plan else None,
            expiry_date=subscription.expiry_date,
            days_left=max(0, math.ceil(remaining / SECONDS_PER_DAY)),
            is_active=remaining > 0,
        )

    @staticmethod
    async def list_user_subscriptions(db: AsyncSession, user_id: uuid.UUID) -> List[UserSubscription]:
        return await SubscriptionRepository.list_for_user(db, user_id)

    # ---- Gate tính năng ----

    @staticmethod
    async def require_active_subscription(db: AsyncSession, user_id: uuid.UUID) -> UserSubscription:
        subscription = await SubscriptionRepository.get_active_for_user(db, user_id)
        if not subscription:
            raise ForbiddenException("Active subscription required", "SUBSCRIPTION_REQUIRED")
        if subscription.expiry_date < get_utc_now():
            raise ForbiddenException("Subscription expired", "SUBSCRIPTION_EXPIRED")
        return subscription

    @staticmethod
    async def consume_usage(db: AsyncSession, subscription: UserSubscription, daily_limit: Optional[int] = None) -> UsageRead:
        """Trừ một lượt sử dụng trong ngày; bộ đếm reset vào 00:00 kế tiếp."""
        limit = daily_limit if daily_limit is not None else settings.DAILY_USAGE_LIMIT
        now = get_utc_now()
        if subscription.usage_reset_at is None or now >= subscription.usage_reset_at:
            await SubscriptionRepository.reset_usage(db, subscription, next_midnight(now))

        if not await SubscriptionRepository.increment_usage(db, subscription.id, limit):
            await db.commit()
            raise UsageLimitException("Daily usage limit exceeded")
        await db.commit()
        await db.refresh(subscription)
        return UsageRead(
            usage_count=subscription.usage_count,
            daily_limit=limit,
            remaining=max(0, limit - subscription.usage_count),
            usage_reset_at=subscription.usage_reset_at,
        )

    # ---- Thống kê ----

    @staticmethod
    async def get_analytics(db: AsyncSession) -> SubscriptionAnalytics:
        now = get_utc_now()
        return SubscriptionAnalytics(
            active_subscriptions=await SubscriptionRepository.count_active(db),
            expired_subscriptions=await SubscriptionRepository.count_expired(db, now),
            per_plan=await SubscriptionRepository.count_active_per_plan(db),
        )

    @staticmethod
    async def get_earnings(db: AsyncSession) -> EarningsAnalytics:
        """Doanh thu chỉ tính các gói có payment_id (gán tay / import không tính)."""
        today_start = start_of_day(get_utc_now())
        month_start = today_start.replace(day=1)
        plan_wise = await SubscriptionRepository.plan_purchase_stats(db, paid_only=True)
        return EarningsAnalytics(
            today_earnings=await SubscriptionRepository.sum_paid_earnings(db, today_start),
            monthly_earnings=await SubscriptionRepository.sum_paid_earnings(db, month_start),
            total_earnings=await SubscriptionRepository.sum_paid_earnings(db),
            plan_wise=[PlanPurchaseStat(**row) for row in sorted(plan_wise, key=lambda r: r["total_amount"], reverse=True)],
        )

    @staticmethod
    async def get_bestseller_plans(db: AsyncSession) -> BestsellerPlans:
        stats = [PlanPurchaseStat(**row) for row in await SubscriptionRepository.plan_purchase_stats(db)]
        return BestsellerPlans(bestseller_plan=stats[0] if stats else None, top_plans=stats)
