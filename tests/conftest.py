"""
DRD Portal - Test Configuration and Fixtures
"""
import os
from datetime import datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Callable, Optional
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession
from faker import Faker

# Set testing environment
os.environ['ENVIRONMENT'] = 'testing'
os.environ['LOG_LEVEL'] = 'WARNING'
os.environ['MENTOR_GATE_ENABLED'] = 'true'

from drd_portal.main import app
from drd_portal.api.deps import get_event_bus, get_workflow_config
from drd_portal.core.capabilities import Actor, Capabilities, ReviewCategory, ReviewScope
from drd_portal.core.config import WorkflowConfig
from drd_portal.core.database import Base, build_engine, build_session_factory, get_db
from drd_portal.core.events import build_event_bus
from drd_portal.core.types import generate_uuid
from drd_portal.models import IncentivePolicy, SplitPolicy, DepartmentPermission, SubmissionKind
from drd_portal.schemas.submission import SubmissionCreate, InvestigatorIn
from drd_portal.services.capability_provider import AssignmentCapabilityProvider
from drd_portal.services.policy_store import PolicyStore
from drd_portal.services.submission_service import SubmissionService
from drd_portal.services.suggestion_ledger import SuggestionLedger
from drd_portal.services.workflow_service import WorkflowService

fake = Faker()

SCHOOL = "SOE"
OTHER_SCHOOL = "SOM"

COMPLETE_PAYLOADS = {
    SubmissionKind.ipr: {
        "ipr_type": "patent",
        "filing_type": "provisional",
        "project_type": "faculty_research",
        "description": "A low-cost water purification membrane",
    },
    SubmissionKind.research: {
        "publication_type": "research_paper",
        "journal_name": "Journal of Applied Membranes",
        "indexing_category": "q1",
    },
    SubmissionKind.grant: {
        "project_category": "govt",
        "project_type": "indian",
        "funding_agency_name": "DST",
        "submitted_amount": "500000",
    },
}


def make_actor(
    user_id: Optional[str] = None,
    review: tuple = (),
    approve: tuple = (),
    assign: tuple = (),
    credit: tuple = (),
    is_admin: bool = False,
) -> Actor:
    """Actor with explicit capabilities; `review` holds (category, school) pairs"""
    user_id = user_id or generate_uuid()
    return Actor(
        user_id=user_id,
        capabilities=Capabilities(
            user_id=user_id,
            review_scopes=frozenset(ReviewScope(ReviewCategory(c), s) for c, s in review),
            approve_categories=frozenset(ReviewCategory(c) for c in approve),
            assign_categories=frozenset(ReviewCategory(c) for c in assign),
            credit_categories=frozenset(ReviewCategory(c) for c in credit),
            is_admin=is_admin,
        ),
        display_name=fake.name(),
    )


ALL_CATEGORIES = tuple(c.value for c in ReviewCategory)


# ==================== Database ====================

@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite engine per test so separate sessions really are separate"""
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'drd_test.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with session_factory() as session:
        yield session


# ==================== Services ====================

@pytest.fixture
def bus():
    event_bus = build_event_bus()
    event_bus.keep_history = True
    return event_bus


@pytest.fixture
def workflow_config() -> WorkflowConfig:
    return WorkflowConfig(mentor_gate_enabled=True)


@pytest.fixture
def workflow(db_session, workflow_config, bus) -> WorkflowService:
    return WorkflowService(db_session, config=workflow_config, events=bus)


@pytest.fixture
def ledger(db_session, workflow, bus) -> SuggestionLedger:
    return SuggestionLedger(db_session, workflow=workflow, events=bus)


@pytest.fixture
def submissions(db_session, workflow_config) -> SubmissionService:
    return SubmissionService(db_session, config=workflow_config)


@pytest.fixture
def policy_store(db_session) -> PolicyStore:
    return PolicyStore(db_session)


@pytest.fixture
def provider(db_session) -> AssignmentCapabilityProvider:
    return AssignmentCapabilityProvider(db_session)


# ==================== Actors ====================

@pytest.fixture
def actor_factory() -> Callable[..., Actor]:
    return make_actor


@pytest.fixture
def applicant() -> Actor:
    return make_actor()


@pytest.fixture
def co_applicant() -> Actor:
    return make_actor()


@pytest.fixture
def reviewer() -> Actor:
    return make_actor(review=tuple((c, SCHOOL) for c in ALL_CATEGORIES))


@pytest.fixture
def second_reviewer() -> Actor:
    return make_actor(review=tuple((c, SCHOOL) for c in ALL_CATEGORIES))


@pytest.fixture
def outside_reviewer() -> Actor:
    """Reviewer assigned to a different school"""
    return make_actor(review=tuple((c, OTHER_SCHOOL) for c in ALL_CATEGORIES))


@pytest.fixture
def head() -> Actor:
    """Department head: final approval authority in every category"""
    return make_actor(approve=ALL_CATEGORIES, assign=ALL_CATEGORIES)


@pytest.fixture
def finance_officer() -> Actor:
    return make_actor(credit=ALL_CATEGORIES)


@pytest.fixture
def admin() -> Actor:
    return make_actor(is_admin=True)


# ==================== Factories ====================

@pytest.fixture
def make_policy(db_session) -> Callable:
    async def _make_policy(
        category: str = "ipr",
        sub_type: str = "patent",
        base_amount="10000",
        base_points: int = 20,
        split_policy: SplitPolicy = SplitPolicy.equal,
        role_percentages=None,
        international_bonus=None,
        consortium_bonus=None,
        effective_from: Optional[datetime] = None,
        effective_to: Optional[datetime] = None,
        is_active: bool = True,
        policy_name: Optional[str] = None,
    ) -> IncentivePolicy:
        policy = IncentivePolicy(
            policy_name=policy_name or f"{category}/{sub_type} policy",
            category=category,
            sub_type=sub_type,
            base_amount=Decimal(str(base_amount)),
            base_points=base_points,
            split_policy=split_policy,
            role_percentages=role_percentages or [],
            international_bonus=Decimal(str(international_bonus)) if international_bonus is not None else None,
            consortium_bonus=Decimal(str(consortium_bonus)) if consortium_bonus is not None else None,
            is_active=is_active,
            effective_from=effective_from or datetime.utcnow() - timedelta(days=30),
            effective_to=effective_to,
        )
        db_session.add(policy)
        await db_session.commit()
        return policy

    return _make_policy


@pytest.fixture
def make_draft(submissions, applicant) -> Callable:
    async def _make_draft(
        kind: SubmissionKind = SubmissionKind.ipr,
        actor: Optional[Actor] = None,
        title: Optional[str] = None,
        payload: Optional[dict] = None,
        investigators=None,
        school_id: str = SCHOOL,
        mentor_id: Optional[str] = None,
        applicant_is_student: bool = False,
    ):
        data = SubmissionCreate(
            kind=kind,
            title=title or fake.sentence(nb_words=6),
            school_id=school_id,
            mentor_id=mentor_id,
            applicant_is_student=applicant_is_student,
            applicant_name=fake.name(),
            payload=dict(COMPLETE_PAYLOADS[kind]) if payload is None else payload,
            investigators=[InvestigatorIn(**entry) for entry in (investigators or [])],
        )
        return await submissions.create_draft(actor or applicant, data)

    return _make_draft


@pytest.fixture
def under_review(make_draft, workflow, applicant, reviewer) -> Callable:
    """Draft -> submitted -> under_review"""
    async def _under_review(**kwargs):
        submission = await make_draft(**kwargs)
        await workflow.submit(submission.id, applicant)
        return await workflow.start_review(submission.id, reviewer)

    return _under_review


# ==================== HTTP ====================

@pytest.fixture
async def client(session_factory, workflow_config, bus) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_workflow_config] = lambda: workflow_config
    app.dependency_overrides[get_event_bus] = lambda: bus

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def grant_permission(db_session) -> Callable:
    """Insert a DepartmentPermission row directly (bootstraps the first admin)"""
    async def _grant(user_id: str, category: Optional[str] = None, **flags) -> DepartmentPermission:
        row = DepartmentPermission(
            user_id=user_id,
            category=category,
            assigned_school_ids=flags.pop("assigned_school_ids", []),
            **flags,
        )
        db_session.add(row)
        await db_session.commit()
        return row

    return _grant
