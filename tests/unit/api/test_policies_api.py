"""
API Tests for incentive policies and DRD assignments
"""
import pytest
from decimal import Decimal

from drd_portal.core.types import generate_uuid


API = "/api/v1"

GRANT_POLICY = {
    "policy_name": "Industry grants",
    "category": "industry",
    "sub_type": "indian",
    "base_amount": "10000",
    "split_policy": "percentage_based",
    "role_percentages": [
        {"role": "pi", "percentage": 40},
        {"role": "co_pi", "percentage": 60},
    ],
}


def as_user(user_id: str) -> dict:
    return {"X-User-Id": user_id}


@pytest.fixture
async def admin_id(grant_permission) -> str:
    user_id = generate_uuid()
    await grant_permission(user_id, None, is_admin=True)
    return user_id


class TestPoliciesApi:

    async def test_admin_creates_and_lists(self, client, admin_id):
        created = await client.post(f"{API}/policies", json=GRANT_POLICY, headers=as_user(admin_id))
        listing = await client.get(f"{API}/policies", params={"category": "industry"}, headers=as_user(admin_id))

        assert created.status_code == 201, created.text
        policy = created.json()
        assert policy["is_active"] is True
        assert policy["split_policy"] == "percentage_based"
        assert Decimal(str(policy["base_amount"])) == Decimal("10000")
        assert listing.json()["total"] == 1

    async def test_non_admin_forbidden(self, client):
        response = await client.post(f"{API}/policies", json=GRANT_POLICY, headers=as_user(generate_uuid()))

        assert response.status_code == 403

    async def test_invalid_policy(self, client, admin_id):
        body = dict(GRANT_POLICY, role_percentages=[{"role": "pi", "percentage": 40}])

        response = await client.post(f"{API}/policies", json=body, headers=as_user(admin_id))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_POLICY"

    async def test_deactivate(self, client, admin_id):
        created = await client.post(f"{API}/policies", json=GRANT_POLICY, headers=as_user(admin_id))

        response = await client.post(
            f"{API}/policies/{created.json()['id']}/deactivate", headers=as_user(admin_id)
        )
        active = await client.get(f"{API}/policies", params={"active_only": True}, headers=as_user(admin_id))

        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert active.json()["total"] == 0

    async def test_preview_ad_hoc_roster(self, client, admin_id):
        await client.post(
            f"{API}/policies",
            json=dict(GRANT_POLICY, consortium_bonus="3000"),
            headers=as_user(admin_id),
        )

        response = await client.post(
            f"{API}/policies/preview",
            json={
                "category": "industry",
                "sub_type": "indian",
                "consortium_members": 1,
                "participants": [
                    {"name": "PI", "role": "pi"},
                    {"name": "Co-PI A", "role": "co_pi"},
                    {"name": "Co-PI B", "role": "co_pi"},
                ],
            },
            headers=as_user(generate_uuid()),
        )

        assert response.status_code == 200, response.text
        preview = response.json()
        assert Decimal(str(preview["total_amount"])) == Decimal("13000")
        amounts = [Decimal(str(s["amount"])) for s in preview["shares"]]
        assert amounts == [Decimal("5200"), Decimal("3900"), Decimal("3900")]

    async def test_preview_without_policy(self, client):
        response = await client.post(
            f"{API}/policies/preview",
            json={"category": "book", "participants": [{"name": "Author", "role": "first_author"}]},
            headers=as_user(generate_uuid()),
        )

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "POLICY_NOT_FOUND"
        assert error["details"]["sub_type"] == "default"


class TestAssignmentsApi:

    async def test_my_capabilities(self, client, grant_permission):
        user_id = generate_uuid()
        await grant_permission(user_id, "conference", can_review=True, assigned_school_ids=["SOE"])

        response = await client.get(f"{API}/assignments/me", headers=as_user(user_id))

        assert response.status_code == 200
        data = response.json()
        assert data["review_scopes"] == [{"category": "conference", "school_id": "SOE"}]
        assert data["approve_categories"] == []

    async def test_head_assigns_reviewer(self, client, grant_permission):
        head_id = generate_uuid()
        reviewer_id = generate_uuid()
        await grant_permission(head_id, "research", can_approve=True, can_assign_school=True)

        response = await client.put(
            f"{API}/assignments/reviewers/{reviewer_id}/research",
            json={"school_ids": ["SOS", "SOE"]},
            headers=as_user(head_id),
        )
        me = await client.get(f"{API}/assignments/me", headers=as_user(reviewer_id))

        assert response.status_code == 200, response.text
        assert response.json()["assigned_school_ids"] == ["SOE", "SOS"]
        assert len(me.json()["review_scopes"]) == 2

    async def test_head_of_other_category_cannot_assign(self, client, grant_permission):
        head_id = generate_uuid()
        await grant_permission(head_id, "research", can_assign_school=True)

        response = await client.put(
            f"{API}/assignments/reviewers/{generate_uuid()}/grant",
            json={"school_ids": ["SOE"]},
            headers=as_user(head_id),
        )

        assert response.status_code == 403

    async def test_admin_grants_permission(self, client, admin_id):
        finance_id = generate_uuid()

        response = await client.put(
            f"{API}/assignments/permissions/{finance_id}",
            json={"category": "ipr", "can_credit": True},
            headers=as_user(admin_id),
        )
        me = await client.get(f"{API}/assignments/me", headers=as_user(finance_id))

        assert response.status_code == 200
        assert me.json()["credit_categories"] == ["ipr"]
