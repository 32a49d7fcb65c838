from conftest import TEST_PASSWORD

API = "/api/v1"


async def _user_token(client, user, device_id="device-A"):
    response = await client.post(
        f"{API}/auth/login",
        json={"email": user.email, "password": TEST_PASSWORD, "device_id": device_id},
    )
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


async def _admin_token(client, admin):
    response = await client.post(f"{API}/admin/auth/login", json={"email": admin.email, "password": TEST_PASSWORD})
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200


async def test_register_returns_token(client):
    response = await client.post(f"{API}/auth/register", json={
        "email": "api@example.com",
        "password": "secret123",
        "whatsapp": "919800000001",
        "device_id": "device-A",
    })

    assert response.status_code == 201
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["email"] == "api@example.com"


async def test_login_from_other_device_returns_flags(client, make_user):
    user = await make_user(device_id="device-A")

    response = await client.post(
        f"{API}/auth/login",
        json={"email": user.email, "password": TEST_PASSWORD, "device_id": "device-B"},
    )

    assert response.status_code == 403
    body = response.json()
    assert body["error_code"] == "DEVICE_MISMATCH"
    assert body["isBlocked"] is True
    assert body["isDeviceMismatch"] is True


async def test_blocked_account_has_no_mismatch_flag(client, make_user):
    user = await make_user(device_id="device-A", is_blocked=True)

    response = await client.post(
        f"{API}/auth/login",
        json={"email": user.email, "password": TEST_PASSWORD, "device_id": "device-A"},
    )

    assert response.status_code == 403
    body = response.json()
    assert body["error_code"] == "ACCOUNT_BLOCKED"
    assert "isDeviceMismatch" not in body


async def test_blocked_login_binds_device_despite_rejection(client, make_user):
    user = await make_user(is_blocked=True)

    first = await client.post(
        f"{API}/auth/login",
        json={"email": user.email, "password": TEST_PASSWORD, "device_id": "device-Z"},
    )
    assert first.json()["error_code"] == "ACCOUNT_BLOCKED"

    second = await client.post(
        f"{API}/auth/login",
        json={"email": user.email, "password": TEST_PASSWORD, "device_id": "device-Y"},
    )
    assert second.status_code == 403
    assert second.json()["error_code"] == "DEVICE_MISMATCH"


async def test_protected_routes_require_token(client):
    assert (await client.get(f"{API}/users/me")).status_code == 401
    assert (await client.get(f"{API}/admin/users")).status_code == 401


async def test_user_token_cannot_reach_admin_routes(client, make_user):
    user = await make_user()
    token = await _user_token(client, user)

    response = await client.get(f"{API}/admin/users", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


async def test_usage_without_subscription_is_forbidden(client, make_user):
    user = await make_user()
    token = await _user_token(client, user)

    response = await client.post(f"{API}/subscriptions/me/usage", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 403
    assert response.json()["error_code"] == "SUBSCRIPTION_REQUIRED"


async def test_admin_creates_plan_and_assigns_it(client, admin, make_user):
    user = await make_user()
    headers = {"Authorization": f"Bearer {await _admin_token(client, admin)}"}

    created = await client.post(f"{API}/admin/plans", headers=headers, json={
        "title": "Yearly",
        "code": "yearly",
        "description": ["Everything"],
        "duration_in_months": 12,
        "actual_price": 9999,
        "discounted_price": 4999,
    })
    assert created.status_code == 201, created.text
    plan = created.json()
    assert plan["code"] == "YEARLY"

    assigned = await client.post(
        f"{API}/admin/users/{user.id}/assign-plan",
        headers=headers,
        json={"plan_id": plan["id"]},
    )
    assert assigned.status_code == 201, assigned.text
    assert assigned.json()["is_active"] is True

    user_headers = {"Authorization": f"Bearer {await _user_token(client, user)}"}
    mine = await client.get(f"{API}/subscriptions/me", headers=user_headers)
    assert mine.status_code == 200
    assert mine.json()["plan_title"] == "Yearly"


async def test_invalid_plan_duration_is_rejected(client, admin):
    headers = {"Authorization": f"Bearer {await _admin_token(client, admin)}"}

    response = await client.post(f"{API}/admin/plans", headers=headers, json={
        "title": "Odd",
        "code": "odd",
        "duration_in_months": 2,
        "actual_price": 100,
        "discounted_price": 100,
    })

    assert response.status_code == 422


async def test_admin_reset_device_over_http(client, admin, make_user):
    user = await make_user(device_id="device-A", is_blocked=True)
    headers = {"Authorization": f"Bearer {await _admin_token(client, admin)}"}

    response = await client.post(f"{API}/admin/users/{user.id}/reset-device", headers=headers)
    assert response.status_code == 200

    token = await _user_token(client, user, device_id="device-B")
    assert token


async def test_wrong_admin_password(client, admin):
    response = await client.post(f"{API}/admin/auth/login", json={"email": admin.email, "password": "nope"})

    assert response.status_code == 401
    assert response.json()["error_code"] == "INVALID_CREDENTIALS"
