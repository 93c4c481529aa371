"""
Pytest Configuration and Fixtures.
Shared test fixtures for all test modules.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio

from pharmacy_claims.core.config import ClaimsSettings
from pharmacy_claims.core.enums import ClaimStatus
from pharmacy_claims.schemas.insurance import (
    ClaimLineItem,
    InsuranceClaim,
    InsurancePlan,
    InsuranceProvider,
    PlanCoverageItem,
)


@pytest.fixture
def provider():
    """Create an active insurance provider."""
    return InsuranceProvider(name="Demo Health Insurance", code="DEMO")


@pytest.fixture
def make_plan(provider):
    """Factory for plans owned by the provider fixture."""

    def _make_plan(**overrides) -> InsurancePlan:
        data = {
            "name": "Standard Pharmacy Plan",
            "code": "STD",
            "provider_id": provider.id,
            "coverage_percentage": Decimal("80"),
            "patient_copay": Decimal("20"),
        }
        data.update(overrides)
        return InsurancePlan(**data)

    return _make_plan


@pytest.fixture
def plan(make_plan):
    """80% plan with no annual limit and no overrides."""
    return make_plan()


@pytest.fixture
def make_coverage_item():
    """Factory for coverage overrides."""

    def _make_coverage_item(**overrides) -> PlanCoverageItem:
        data = {"coverage_percentage": Decimal("50")}
        data.update(overrides)
        return PlanCoverageItem(**data)

    return _make_coverage_item


@pytest.fixture
def make_claim(provider, plan):
    """Factory for claims against the plan fixture."""

    def _make_claim(**overrides) -> InsuranceClaim:
        data = {
            "claim_number": f"CLM-20260115-{uuid4().hex[:8].upper()}",
            "provider_id": provider.id,
            "plan_id": plan.id,
            "patient_id": uuid4(),
            "total_amount": Decimal("100.00"),
            "covered_amount": Decimal("80.00"),
            "status": ClaimStatus.SUBMITTED,
            "submitted_at": datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc),
        }
        data.update(overrides)
        return InsuranceClaim(**data)

    return _make_claim


@pytest.fixture
def claim_with_items(make_claim):
    """Submitted claim with two lines: 2 x 50.00 and 1 x 20.00 at 80%."""
    items = [
        ClaimLineItem(
            item_id=uuid4(),
            item_type="PRESCRIPTION",
            quantity=2,
            unit_price=Decimal("50.00"),
            line_total=Decimal("100.00"),
            covered_amount=Decimal("80.00"),
        ),
        ClaimLineItem(
            item_id=uuid4(),
            item_type="OTC",
            quantity=1,
            unit_price=Decimal("20.00"),
            line_total=Decimal("20.00"),
            covered_amount=Decimal("16.00"),
        ),
    ]
    return make_claim(
        total_amount=Decimal("120.00"),
        covered_amount=Decimal("96.00"),
        items=items,
    )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def test_settings():
    """Settings for an in-memory SQLite database."""
    return ClaimsSettings(
        ENVIRONMENT="testing",
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
    )


@pytest_asyncio.fixture
async def db_engine(test_settings):
    """Async engine with all claims tables created."""
    from pharmacy_claims.db.connection import create_engine_from_url, create_tables

    engine = create_engine_from_url(test_settings.DATABASE_URL)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Session bound to the test engine."""
    from pharmacy_claims.db.connection import make_session_maker

    session_maker = make_session_maker(db_engine)
    async with session_maker() as session:
        yield session


@pytest.fixture
def claims_service(db_session, test_settings):
    """Claims service over the test session."""
    from pharmacy_claims.services.claims_service import ClaimsService

    return ClaimsService(db_session, settings=test_settings)


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
