"""
Unit Tests for the incentive policy store
"""
import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from drd_portal.core.config import PolicyDefault, PolicyDefaults
from drd_portal.core.exceptions import (
    ForbiddenError,
    IncentivePolicyNotFoundError,
    InvalidPolicyError,
    PolicyNotFoundError,
)
from drd_portal.models import SplitPolicy
from drd_portal.schemas.policy import PolicyCreate, RolePercentage
from drd_portal.services.policy_store import validate_policy_terms


GRANT_TABLE = [
    {"role": "pi", "percentage": "45"},
    {"role": "co_pi", "percentage": "55"},
]


class TestFindActivePolicy:

    async def test_returns_policy_in_window(self, policy_store, make_policy):
        policy = await make_policy("ipr", "patent")

        found = await policy_store.find_active_policy("ipr", "patent")

        assert found.id == policy.id

    async def test_newest_effective_from_wins(self, policy_store, make_policy):
        now = datetime.utcnow()
        await make_policy("ipr", "patent", base_amount="10000", effective_from=now - timedelta(days=400))
        newer = await make_policy("ipr", "patent", base_amount="15000", effective_from=now - timedelta(days=10))

        found = await policy_store.find_active_policy("ipr", "patent")

        assert found.id == newer.id
        assert found.base_amount == Decimal("15000.00")

    async def test_lookup_at_past_time(self, policy_store, make_policy):
        now = datetime.utcnow()
        old = await make_policy(
            "ipr", "patent",
            effective_from=now - timedelta(days=400),
            effective_to=now - timedelta(days=11),
        )
        await make_policy("ipr", "patent", effective_from=now - timedelta(days=10))

        found = await policy_store.find_active_policy("ipr", "patent", at_time=now - timedelta(days=100))

        assert found.id == old.id

    async def test_inactive_policy_is_skipped(self, policy_store, make_policy):
        await make_policy("research_paper", "q1", is_active=False)

        with pytest.raises(PolicyNotFoundError) as exc:
            await policy_store.find_active_policy("research_paper", "q1")
        assert exc.value.status_code == 422
        assert exc.value.details["category"] == "research_paper"
        assert exc.value.details["sub_type"] == "q1"

    async def test_expired_policy_is_skipped(self, policy_store, make_policy):
        now = datetime.utcnow()
        await make_policy(
            "book", "default",
            effective_from=now - timedelta(days=60),
            effective_to=now - timedelta(days=1),
        )

        with pytest.raises(PolicyNotFoundError):
            await policy_store.find_active_policy("book", "default")

    async def test_future_policy_is_skipped(self, policy_store, make_policy):
        await make_policy("book", "default", effective_from=datetime.utcnow() + timedelta(days=5))

        with pytest.raises(PolicyNotFoundError):
            await policy_store.find_active_policy("book", "default")

    async def test_no_default_sub_type_fallback(self, policy_store, make_policy):
        await make_policy("ipr", "default")

        with pytest.raises(PolicyNotFoundError):
            await policy_store.find_active_policy("ipr", "design")


class TestValidatePolicyTerms:

    def test_equal_split_needs_no_table(self):
        validate_policy_terms("equal", [], Decimal("10000"), 10)

    def test_percentage_table_totalling_100(self):
        validate_policy_terms("percentage_based", GRANT_TABLE, Decimal("10000"), 0)

    def test_unknown_split(self):
        with pytest.raises(InvalidPolicyError) as exc:
            validate_policy_terms("weighted", [], Decimal("10000"), 0)
        assert exc.value.code == "INVALID_POLICY"
        assert exc.value.details["field"] == "split_policy"

    @pytest.mark.parametrize("base_amount,base_points,field", [
        (Decimal("-1"), 0, "base_amount"),
        (Decimal("100"), -3, "base_points"),
    ])
    def test_negative_base(self, base_amount, base_points, field):
        with pytest.raises(InvalidPolicyError) as exc:
            validate_policy_terms("equal", [], base_amount, base_points)
        assert exc.value.details["field"] == field

    def test_negative_bonus(self):
        with pytest.raises(InvalidPolicyError) as exc:
            validate_policy_terms("equal", [], Decimal("100"), 0, consortium_bonus=Decimal("-5"))
        assert exc.value.details["field"] == "consortium_bonus"

    def test_window_must_be_ordered(self):
        start = datetime(2024, 4, 1)
        with pytest.raises(InvalidPolicyError) as exc:
            validate_policy_terms("equal", [], Decimal("100"), 0, effective_from=start, effective_to=start)
        assert exc.value.details["field"] == "effective_to"

    def test_percentage_split_needs_table(self):
        with pytest.raises(InvalidPolicyError):
            validate_policy_terms("percentage_based", [], Decimal("100"), 0)

    def test_unknown_role(self):
        with pytest.raises(InvalidPolicyError) as exc:
            validate_policy_terms(
                "percentage_based",
                [{"role": "pi", "percentage": 50}, {"role": "sponsor", "percentage": 50}],
                Decimal("100"),
                0,
            )
        assert "sponsor" in exc.value.message

    def test_table_must_total_100(self):
        with pytest.raises(InvalidPolicyError) as exc:
            validate_policy_terms(
                "percentage_based",
                [{"role": "pi", "percentage": 45}, {"role": "co_pi", "percentage": 45}],
                Decimal("100"),
                0,
            )
        assert "90" in exc.value.message

    def test_accepts_role_percentage_models(self):
        entries = [RolePercentage(role="pi", percentage=Decimal("60")), RolePercentage(role="co_pi", percentage=Decimal("40"))]
        validate_policy_terms(SplitPolicy.percentage_based, entries, Decimal("100"), 0)


class TestPolicyAdministration:

    def _grant_policy(self, **overrides) -> PolicyCreate:
        data = dict(
            policy_name="Government grants 2024",
            category="govt",
            sub_type="indian",
            base_amount=Decimal("10000"),
            base_points=0,
            split_policy=SplitPolicy.percentage_based,
            role_percentages=[RolePercentage(**entry) for entry in GRANT_TABLE],
            consortium_bonus=Decimal("3000"),
        )
        data.update(overrides)
        return PolicyCreate(**data)

    async def test_admin_creates_policy(self, policy_store, admin):
        policy = await policy_store.create_policy(self._grant_policy(), admin)

        assert policy.is_active
        assert policy.created_by_id == admin.user_id
        assert policy.role_percentages == [
            {"role": "pi", "percentage": "45"},
            {"role": "co_pi", "percentage": "55"},
        ]
        found = await policy_store.find_active_policy("govt", "indian")
        assert found.id == policy.id

    async def test_non_admin_cannot_create(self, policy_store, head):
        with pytest.raises(ForbiddenError):
            await policy_store.create_policy(self._grant_policy(), head)
        assert await policy_store.list_policies() == []

    async def test_invalid_terms_write_nothing(self, policy_store, admin):
        bad = self._grant_policy(role_percentages=[RolePercentage(role="pi", percentage=Decimal("80"))])

        with pytest.raises(InvalidPolicyError):
            await policy_store.create_policy(bad, admin)
        assert await policy_store.list_policies() == []

    async def test_deactivate(self, policy_store, admin):
        policy = await policy_store.create_policy(self._grant_policy(), admin)

        await policy_store.deactivate_policy(policy.id, admin)

        with pytest.raises(PolicyNotFoundError):
            await policy_store.find_active_policy("govt", "indian")
        assert (await policy_store.get(policy.id)).is_active is False

    async def test_non_admin_cannot_deactivate(self, policy_store, admin, finance_officer):
        policy = await policy_store.create_policy(self._grant_policy(), admin)

        with pytest.raises(ForbiddenError):
            await policy_store.deactivate_policy(policy.id, finance_officer)

    async def test_deactivate_unknown_policy(self, policy_store, admin):
        with pytest.raises(IncentivePolicyNotFoundError) as exc:
            await policy_store.deactivate_policy("missing", admin)
        assert exc.value.code == "POLICY_NOT_FOUND"
        assert exc.value.status_code == 404

    async def test_list_filters(self, policy_store, make_policy):
        await make_policy("ipr", "patent")
        await make_policy("ipr", "design", is_active=False)
        await make_policy("book", "default")

        assert len(await policy_store.list_policies(category="ipr")) == 2
        assert len(await policy_store.list_policies(category="ipr", active_only=True)) == 1
        assert len(await policy_store.list_policies(sub_type="default")) == 1


class TestSeedDefaults:

    async def test_seeds_missing_pairs_only(self, policy_store, make_policy):
        existing = await make_policy("ipr", "patent", base_amount="12000")
        defaults = PolicyDefaults(policies=[
            PolicyDefault(category="ipr", sub_type="patent", base_amount=Decimal("10000"), base_points=20),
            PolicyDefault(category="book", sub_type="default", base_amount=Decimal("5000"), base_points=5),
        ])

        created = await policy_store.seed_default_policies(defaults)

        assert [(p.category, p.sub_type) for p in created] == [("book", "default")]
        patents = await policy_store.list_policies("ipr", "patent")
        assert [p.id for p in patents] == [existing.id]

    async def test_seeding_twice_is_a_no_op(self, policy_store):
        defaults = PolicyDefaults(policies=[
            PolicyDefault(
                category="govt",
                sub_type="indian",
                base_amount=Decimal("10000"),
                base_points=0,
                split_policy="percentage_based",
                role_percentages=GRANT_TABLE,
            ),
        ])

        assert len(await policy_store.seed_default_policies(defaults)) == 1
        assert await policy_store.seed_default_policies(defaults) == []
