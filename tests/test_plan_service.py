import pytest
from pydantic import ValidationError

from app.dto.plan_dto import PlanCreate, PlanUpdate
from app.exceptions.base_exception import ConflictException
from app.services.plan_service import PlanService


def _plan_request(**overrides):
    data = {
        "title": "Quarterly",
        "code": " quarter ",
        "description": ["All features", "Priority support"],
        "duration_in_months": 3,
        "actual_price": 2999,
        "discounted_price": 1999,
    }
    data.update(overrides)
    return PlanCreate(**data)


async def test_create_plan_uppercases_code(db):
    plan = await PlanService.create_plan(db, _plan_request())

    assert plan.code == "QUARTER"
    assert plan.is_active is True


async def test_duplicate_code_is_rejected_regardless_of_case(db):
    await PlanService.create_plan(db, _plan_request())

    with pytest.raises(ConflictException) as exc_info:
        await PlanService.create_plan(db, _plan_request(code="Quarter"))
    assert exc_info.value.error_code == "PLAN_CODE_EXISTS"


async def test_update_to_existing_code_is_rejected(db):
    await PlanService.create_plan(db, _plan_request())
    other = await PlanService.create_plan(db, _plan_request(code="yearly", duration_in_months=12))

    with pytest.raises(ConflictException) as exc_info:
        await PlanService.update_plan(db, other.id, PlanUpdate(code="quarter"))
    assert exc_info.value.error_code == "PLAN_CODE_EXISTS"


async def test_update_keeps_unset_fields(db):
    plan = await PlanService.create_plan(db, _plan_request())

    updated = await PlanService.update_plan(db, plan.id, PlanUpdate(discounted_price=1499, code="quarter"))

    assert updated.discounted_price == 1499
    assert updated.code == "QUARTER"
    assert updated.title == "Quarterly"


def test_description_is_limited_to_six_lines():
    with pytest.raises(ValidationError):
        _plan_request(description=[f"Line {i}" for i in range(7)])

    assert len(_plan_request(description=[f"Line {i}" for i in range(6)]).description) == 6


def test_offer_text_is_limited_to_thirty_characters():
    with pytest.raises(ValidationError):
        _plan_request(offer_text="x" * 31)

    assert _plan_request(offer_text="x" * 30).offer_text == "x" * 30


@pytest.mark.parametrize("months", [0, 2, 24])
def test_duration_must_be_an_allowed_value(months):
    with pytest.raises(ValidationError):
        _plan_request(duration_in_months=months)


def test_update_validates_the_same_rules():
    with pytest.raises(ValidationError):
        PlanUpdate(duration_in_months=5)
    with pytest.raises(ValidationError):
        PlanUpdate(description=["a"] * 7)


async def test_disable_plan_is_a_soft_delete(db, make_plan):
    plan = await make_plan()

    disabled = await PlanService.disable_plan(db, plan.id)

    assert disabled.is_active is False
    assert await PlanService.get_plan(db, plan.id) is not None
    assert plan.id not in [p.id for p in await PlanService.list_purchasable_plans(db)]
