import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.future import select

from admissions.database import get_db
from admissions.main import app
from admissions.middleware.authentication import get_current_user
from admissions.models import User
from admissions.services.workflow import AdmissionWorkflow, get_workflow


@pytest.fixture
async def users(session_factory, seed):
    async with session_factory() as session:
        result = await session.execute(select(User))
        return {user.role.name: user for user in result.unique().scalars().all()}


@pytest.fixture
async def client(session_factory, seed):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_workflow] = lambda: AdmissionWorkflow(session_factory)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def act_as(users):
    def _act_as(role):
        app.dependency_overrides[get_current_user] = lambda: users[role]
    return _act_as


async def register(client, act_as, seed, full_name="Meera Iyer"):
    act_as("AdmissionStaff")
    response = await client.post(
        "/api/students",
        json={"full_name": full_name, "course_offering_id": seed.offering_id},
    )
    assert response.status_code == 201
    return response.json()["student"]


async def test_login_and_me(client, seed, password):
    response = await client.post(
        "/api/auth/login", json={"username": "accountsofficer", "password": password}
    )
    assert response.status_code == 200
    token = response.json()["access_token"]
    assert response.json()["role"] == "AccountsOfficer"

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["username"] == "accountsofficer"


async def test_login_with_wrong_password(client, seed):
    response = await client.post("/api/auth/login", json={"username": "admin", "password": "nope"})
    assert response.status_code == 401


async def test_requests_without_token_are_rejected(client):
    response = await client.get("/api/students")
    assert response.status_code == 401


async def test_register_and_overview(client, act_as, seed):
    student = await register(client, act_as, seed)
    assert student["status"] == "APPLICATION_ENTERED"

    act_as("Principal")
    response = await client.get(f"/api/students/{student['id']}")
    assert response.status_code == 200
    body = response.json()
    assert body["fee_summary"]["total_fee"] == "50000.00"
    assert body["completion"]["state"] == "NONE_DECLARED"
    assert body["status_history"] == []


async def test_full_flow_over_http(client, act_as, seed):
    student = await register(client, act_as, seed)
    student_id = student["id"]

    act_as("DocumentOfficer")
    response = await client.post(
        f"/api/students/{student_id}/documents/bulk",
        json={"documents": [{"document_type_id": doc_id} for doc_id in seed.required_doc_ids]},
    )
    assert response.status_code == 201
    assert response.json()["status"] == "DOCUMENTS_DECLARED"
    assert len(response.json()["documents"]) == 3

    act_as("AccountsOfficer")
    response = await client.post(
        f"/api/students/{student_id}/payments",
        json={"amount_paid": "20000", "payment_mode": "Cash", "receipt_number": "RCPT-HTTP-1"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "FEE_PARTIAL"
    assert body["fee_summary"]["balance"] == "30000.00"

    response = await client.post(
        f"/api/students/{student_id}/payments",
        json={"amount_paid": "10000", "payment_mode": "Cash", "receipt_number": "RCPT-HTTP-1"},
    )
    assert response.status_code == 409
    assert response.json()["kind"] == "duplicate_receipt"

    response = await client.get(f"/api/students/{student_id}/history")
    assert [row["new_status"] for row in response.json()] == ["FEE_PARTIAL", "DOCUMENTS_DECLARED"]

    response = await client.get(f"/api/students/{student_id}/payments")
    assert len(response.json()) == 1


async def test_payment_records_current_user(client, act_as, seed, users):
    student = await register(client, act_as, seed)

    act_as("AccountsOfficer")
    response = await client.post(
        f"/api/students/{student['id']}/payments",
        json={"amount_paid": "500", "payment_mode": "Online", "receipt_number": "RCPT-WHO"},
    )

    assert response.status_code == 201
    assert response.json()["payment"]["recorded_by"] == users["AccountsOfficer"].id


async def test_payment_requires_accounts_role(client, act_as, seed):
    student = await register(client, act_as, seed)

    act_as("DocumentOfficer")
    response = await client.post(
        f"/api/students/{student['id']}/payments",
        json={"amount_paid": "500", "payment_mode": "Cash", "receipt_number": "RCPT-ROLE"},
    )

    assert response.status_code == 403


async def test_non_positive_payment_is_unprocessable(client, act_as, seed):
    student = await register(client, act_as, seed)

    act_as("AccountsOfficer")
    response = await client.post(
        f"/api/students/{student['id']}/payments",
        json={"amount_paid": "0", "payment_mode": "Cash", "receipt_number": "RCPT-ZERO"},
    )

    assert response.status_code == 422


async def test_unknown_student_is_404(client, act_as, seed):
    act_as("Admin")
    response = await client.get("/api/students/4242")

    assert response.status_code == 404
    assert response.json()["kind"] == "student_not_found"


async def test_fee_adjustment_only_by_accounts_officer(client, act_as, seed):
    student = await register(client, act_as, seed)
    payload = {"adjusted_fee": "45000", "adjustment_reason": "Sports quota"}

    act_as("Admin")
    response = await client.post(f"/api/students/{student['id']}/fee-adjustment", json=payload)
    assert response.status_code == 403

    act_as("AccountsOfficer")
    response = await client.post(f"/api/students/{student['id']}/fee-adjustment", json=payload)
    assert response.status_code == 201
    assert response.json()["fee_summary"]["total_fee"] == "45000.00"

    response = await client.post(f"/api/students/{student['id']}/fee-adjustment", json=payload)
    assert response.status_code == 400
    assert response.json()["kind"] == "fee_adjustment_refused"

    response = await client.get(f"/api/students/{student['id']}/fee-adjustment")
    assert response.json()["discount_amount"] == "5000.00"


async def test_admit_refused_until_paid(client, act_as, seed):
    student = await register(client, act_as, seed)

    act_as("Admin")
    response = await client.post(f"/api/students/{student['id']}/admit", json={})

    assert response.status_code == 409
    assert response.json()["kind"] == "admission_refused"


async def test_status_counts_and_filters(client, act_as, seed):
    await register(client, act_as, seed, "First Applicant")
    second = await register(client, act_as, seed, "Second Applicant")

    act_as("DocumentOfficer")
    await client.post(
        f"/api/students/{second['id']}/documents",
        json={"document_type_id": seed.required_doc_ids[0]},
    )

    act_as("Director")
    counts = {row["status"]: row["count"] for row in (await client.get("/api/dashboard/status-counts")).json()}
    assert counts["APPLICATION_ENTERED"] == 1
    assert counts["DOCUMENTS_INCOMPLETE"] == 1
    assert counts["ADMITTED"] == 0

    response = await client.get("/api/students", params={"status": "DOCUMENTS_INCOMPLETE"})
    assert [row["id"] for row in response.json()] == [second["id"]]

    response = await client.get("/api/students", params={"fee_status": "FEE_PENDING"})
    assert len(response.json()) == 2


async def test_fee_summary_missing_without_structure(client, act_as, seed):
    act_as("AdmissionStaff")
    response = await client.post("/api/students", json={"full_name": "No Course Yet"})
    student_id = response.json()["student"]["id"]

    act_as("AccountsOfficer")
    response = await client.get(f"/api/students/{student_id}/fee-summary")
    assert response.status_code == 404

    response = await client.post(
        f"/api/students/{student_id}/payments",
        json={"amount_paid": "100", "payment_mode": "Cash", "receipt_number": "RCPT-NOFEE"},
    )
    assert response.status_code == 400
    assert response.json()["kind"] == "no_fee_structure_assigned"
