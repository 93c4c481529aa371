"""
Claims Service for Pharmacy Insurance.

Provides:
- Provider, plan and coverage item management
- Patient coverage enrolment
- Insurance verification (eligibility lookup)
- Claim submission: eligibility check, coverage computation and claim
  creation as one unit per (patient, plan)
- Status changes, per-item adjudication and statistics
"""

import asyncio
import weakref
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pharmacy_claims.core.config import ClaimsSettings, get_claims_settings
from pharmacy_claims.core.enums import ClaimStatus
from pharmacy_claims.models.insurance import (
    Claim,
    ClaimItem,
    CoverageItem,
    PatientCoverage,
    Plan,
    Provider,
)
from pharmacy_claims.schemas.coverage import (
    BenefitYearWindow,
    EligibilityResult,
    LineItemInput,
)
from pharmacy_claims.schemas.insurance import (
    ClaimItemAdjustment,
    ClaimSubmission,
    InsuranceClaim,
    InsurancePlan,
    InsurancePlanCreate,
    InsurancePlanUpdate,
    InsuranceProvider,
    InsuranceProviderCreate,
    InsuranceProviderUpdate,
    PatientInsurance,
    PlanCoverageItem,
    PlanCoverageItemCreate,
    PlanCoverageItemUpdate,
)
from pharmacy_claims.services.claim_adjustment import update_claim_items
from pharmacy_claims.services.claim_state_machine import ClaimStateMachine
from pharmacy_claims.services.claim_statistics import ClaimStatistics, get_claim_statistics
from pharmacy_claims.services.coverage_calculator import CoverageCalculator
from pharmacy_claims.services.eligibility_checker import (
    EligibilityChecker,
    benefit_year_window,
)
from pharmacy_claims.utils.errors import (
    ClaimNotEligibleError,
    DuplicateCodeError,
    ImmutableFieldError,
    NotFoundError,
    PlanNotFoundError,
    ProviderMismatchError,
)
from pharmacy_claims.utils.logging import claim_logger, get_logger
from pharmacy_claims.utils.money import HUNDRED

logger = get_logger(__name__)


# =============================================================================
# Submission Serialization
# =============================================================================


# Entries vanish once no submission holds or waits on the lock
_submission_locks: "weakref.WeakValueDictionary[tuple[UUID, UUID], asyncio.Lock]" = (
    weakref.WeakValueDictionary()
)


def get_submission_lock(patient_id: UUID, plan_id: UUID) -> asyncio.Lock:
    """
    Lock guarding eligibility check + claim creation for one patient/plan.

    Only serializes submissions within this process; deployments with several
    workers also rely on the database transaction around the submission.
    """
    key = (patient_id, plan_id)
    lock = _submission_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _submission_locks[key] = lock
    return lock


# =============================================================================
# Claims Service
# =============================================================================


class ClaimsService:
    """
    Service for insurance claims operations.

    Loads data through the session, runs the pure claims components on
    schema objects and writes the results back in a single commit.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[ClaimsSettings] = None,
    ):
        self.session = session
        self.settings = settings or get_claims_settings()
        self.calculator = CoverageCalculator()
        self.eligibility = EligibilityChecker(self.settings.BENEFIT_YEAR_BASIS)
        self.state_machine = ClaimStateMachine(notes_mode=self.settings.NOTES_MODE)

    # =========================================================================
    # Providers
    # =========================================================================

    async def create_provider(self, data: InsuranceProviderCreate) -> InsuranceProvider:
        """Create a provider. Codes are unique across providers."""
        existing = await self.session.scalar(select(Provider).where(Provider.code == data.code))
        if existing is not None:
            raise DuplicateCodeError(f"Provider with code {data.code} already exists", code=data.code)

        provider = Provider(id=uuid4(), **data.model_dump())
        self.session.add(provider)
        await self.session.commit()

        logger.info(f"Created insurance provider {provider.code}")
        return InsuranceProvider.model_validate(provider)

    async def update_provider(
        self,
        provider_id: UUID,
        data: InsuranceProviderUpdate,
    ) -> InsuranceProvider:
        """Update a provider. The code cannot change."""
        provider = await self._get_provider_row(provider_id)
        changes = data.model_dump(exclude_unset=True)

        code = changes.pop("code", None)
        if code is not None and code.strip().upper() != provider.code:
            raise ImmutableFieldError("Provider code cannot be changed", field="code")

        for field_name, value in changes.items():
            setattr(provider, field_name, value)
        await self.session.commit()

        return InsuranceProvider.model_validate(provider)

    async def set_provider_active(self, provider_id: UUID, active: bool) -> InsuranceProvider:
        """Activate or deactivate a provider. Providers are never deleted."""
        provider = await self._get_provider_row(provider_id)
        provider.active = active
        await self.session.commit()

        logger.info(f"Provider {provider.code} active={active}")
        return InsuranceProvider.model_validate(provider)

    async def get_provider(self, provider_id: UUID) -> InsuranceProvider:
        return InsuranceProvider.model_validate(await self._get_provider_row(provider_id))

    async def list_providers(
        self,
        active: Optional[bool] = None,
        name: Optional[str] = None,
    ) -> list[InsuranceProvider]:
        """List providers ordered by name, optionally filtered."""
        query = select(Provider).order_by(Provider.name)
        if active is not None:
            query = query.where(Provider.active == active)
        if name:
            query = query.where(Provider.name.ilike(f"%{name}%"))
        rows = await self.session.scalars(query)
        return [InsuranceProvider.model_validate(row) for row in rows]

    async def _get_provider_row(self, provider_id: UUID) -> Provider:
        provider = await self.session.get(Provider, provider_id)
        if provider is None:
            raise NotFoundError(f"Insurance provider with ID {provider_id} not found")
        return provider

    # =========================================================================
    # Plans
    # =========================================================================

    def _check_copay_complement(self, coverage: Decimal, copay: Decimal) -> None:
        if self.settings.ENFORCE_COPAY_COMPLEMENT and coverage + copay != HUNDRED:
            raise ValueError(
                f"coverage_percentage ({coverage}) and patient_copay ({copay}) must sum to 100"
            )

    async def create_plan(self, data: InsurancePlanCreate) -> InsurancePlan:
        """Create a plan under an existing provider. Codes are unique per provider."""
        await self._get_provider_row(data.provider_id)
        self._check_copay_complement(data.coverage_percentage, data.patient_copay)

        existing = await self.session.scalar(
            select(Plan).where(Plan.provider_id == data.provider_id, Plan.code == data.code)
        )
        if existing is not None:
            raise DuplicateCodeError(
                f"Plan with code {data.code} already exists for this provider",
                code=data.code,
            )

        plan = Plan(id=uuid4(), coverage_items=[], **data.model_dump())
        self.session.add(plan)
        await self.session.commit()

        logger.info(f"Created insurance plan {plan.code} ({plan.coverage_percentage}%)")
        return InsurancePlan.model_validate(plan)

    async def update_plan(self, plan_id: UUID, data: InsurancePlanUpdate) -> InsurancePlan:
        """Update a plan. Code and owning provider cannot change."""
        plan = await self._get_plan_row(plan_id)
        changes = data.model_dump(exclude_unset=True)

        code = changes.pop("code", None)
        if code is not None and code.strip().upper() != plan.code:
            raise ImmutableFieldError("Plan code cannot be changed", field="code")
        provider_id = changes.pop("provider_id", None)
        if provider_id is not None and provider_id != plan.provider_id:
            raise ImmutableFieldError("Plan provider cannot be changed", field="provider_id")

        self._check_copay_complement(
            changes.get("coverage_percentage", plan.coverage_percentage),
            changes.get("patient_copay", plan.patient_copay),
        )

        for field_name, value in changes.items():
            setattr(plan, field_name, value)
        await self.session.commit()

        return InsurancePlan.model_validate(plan)

    async def get_plan(self, plan_id: UUID) -> InsurancePlan:
        return await self.load_plan(plan_id)

    async def list_plans(
        self,
        provider_id: Optional[UUID] = None,
        active: Optional[bool] = None,
    ) -> list[InsurancePlan]:
        query = select(Plan).order_by(Plan.name)
        if provider_id is not None:
            query = query.where(Plan.provider_id == provider_id)
        if active is not None:
            query = query.where(Plan.active == active)
        rows = await self.session.scalars(query)
        return [InsurancePlan.model_validate(row) for row in rows]

    async def _get_plan_row(self, plan_id: UUID) -> Plan:
        plan = await self.session.get(Plan, plan_id)
        if plan is None:
            raise PlanNotFoundError(f"Insurance plan with ID {plan_id} not found")
        return plan

    # =========================================================================
    # Coverage Items
    # =========================================================================

    async def add_coverage_item(
        self,
        plan_id: UUID,
        data: PlanCoverageItemCreate,
    ) -> PlanCoverageItem:
        """Add a per-product or per-category override to a plan."""
        plan = await self._get_plan_row(plan_id)

        item = CoverageItem(id=uuid4(), plan_id=plan.id, **data.model_dump())
        plan.coverage_items.append(item)
        await self.session.commit()

        return PlanCoverageItem.model_validate(item)

    async def update_coverage_item(
        self,
        item_id: UUID,
        data: PlanCoverageItemUpdate,
    ) -> PlanCoverageItem:
        item = await self._get_coverage_item_row(item_id)
        for field_name, value in data.model_dump(exclude_unset=True).items():
            setattr(item, field_name, value)
        await self.session.commit()

        return PlanCoverageItem.model_validate(item)

    async def remove_coverage_item(self, item_id: UUID) -> PlanCoverageItem:
        item = await self._get_coverage_item_row(item_id)
        removed = PlanCoverageItem.model_validate(item)

        plan = await self._get_plan_row(item.plan_id)
        plan.coverage_items.remove(item)
        await self.session.commit()

        return removed

    async def _get_coverage_item_row(self, item_id: UUID) -> CoverageItem:
        item = await self.session.get(CoverageItem, item_id)
        if item is None:
            raise NotFoundError(f"Coverage item with ID {item_id} not found")
        return item

    # =========================================================================
    # Patient Coverage
    # =========================================================================

    async def enroll_patient(
        self,
        patient_id: UUID,
        plan_id: UUID,
        start_date: date,
        end_date: Optional[date] = None,
        policy_number: Optional[str] = None,
    ) -> PatientInsurance:
        """Record a patient's enrolment in a plan."""
        await self._get_plan_row(plan_id)
        enrolment = PatientInsurance(
            patient_id=patient_id,
            plan_id=plan_id,
            start_date=start_date,
            end_date=end_date,
            policy_number=policy_number,
        )

        self.session.add(PatientCoverage(**enrolment.model_dump()))
        await self.session.commit()

        return enrolment

    async def get_patient_coverage(
        self,
        patient_id: UUID,
        plan_id: UUID,
    ) -> Optional[PatientInsurance]:
        """Latest enrolment of a patient in a plan, if any."""
        row = await self.session.scalar(
            select(PatientCoverage)
            .where(PatientCoverage.patient_id == patient_id, PatientCoverage.plan_id == plan_id)
            .order_by(PatientCoverage.start_date.desc())
            .limit(1)
        )
        return PatientInsurance.model_validate(row) if row is not None else None

    # =========================================================================
    # Loaders
    # =========================================================================

    async def load_plan(self, plan_id: UUID) -> InsurancePlan:
        return InsurancePlan.model_validate(await self._get_plan_row(plan_id))

    async def load_provider(self, provider_id: UUID) -> InsuranceProvider:
        return await self.get_provider(provider_id)

    async def load_prior_claims(
        self,
        patient_id: UUID,
        plan_id: UUID,
        window: BenefitYearWindow,
    ) -> list[InsuranceClaim]:
        """Patient's claims against a plan submitted within a benefit year."""
        start = datetime.combine(window.start, datetime.min.time(), tzinfo=timezone.utc)
        end = datetime.combine(window.end, datetime.max.time(), tzinfo=timezone.utc)
        rows = await self.session.scalars(
            select(Claim).where(
                Claim.patient_id == patient_id,
                Claim.plan_id == plan_id,
                Claim.submitted_at >= start,
                Claim.submitted_at <= end,
            )
        )
        return [InsuranceClaim.model_validate(row) for row in rows]

    # =========================================================================
    # Verification
    # =========================================================================

    async def verify_coverage(
        self,
        patient_id: UUID,
        plan_id: UUID,
        as_of: Optional[date] = None,
    ) -> EligibilityResult:
        """Check whether a patient can currently claim against a plan."""
        day = as_of or datetime.now(timezone.utc).date()
        plan = await self.load_plan(plan_id)
        provider = await self.load_provider(plan.provider_id)
        coverage = await self.get_patient_coverage(patient_id, plan_id)
        window = benefit_year_window(day, self.eligibility.basis)
        prior_claims = await self.load_prior_claims(patient_id, plan_id, window)

        return self.eligibility.check_eligibility(
            plan, provider, prior_claims, coverage=coverage, as_of=day
        )

    # =========================================================================
    # Claims
    # =========================================================================

    def _generate_claim_number(self, now: datetime) -> str:
        """
        Generate a claim number.

        Format: {PREFIX}-{YYYYMMDD}-{8 HEX}
        Example: CLM-20260115-9F2C41AB
        """
        return f"{self.settings.CLAIM_NUMBER_PREFIX}-{now:%Y%m%d}-{uuid4().hex[:8].upper()}"

    async def submit_claim(
        self,
        request: ClaimSubmission,
        now: Optional[datetime] = None,
    ) -> InsuranceClaim:
        """
        File a new claim.

        Eligibility check, coverage computation and claim creation run under a
        per (patient, plan) lock and are committed together, so two concurrent
        submissions cannot both spend the same remaining benefit.

        Raises:
            PlanNotFoundError: Plan does not exist
            ProviderMismatchError: Plan belongs to another provider
            ClaimNotEligibleError: Patient cannot claim against the plan
            InvalidLineItemError: A line has a bad quantity or price
        """
        now = now or datetime.now(timezone.utc)

        async with get_submission_lock(request.patient_id, request.plan_id):
            plan = await self.load_plan(request.plan_id)
            if plan.provider_id != request.provider_id:
                raise ProviderMismatchError(
                    f"Plan {plan.code} does not belong to provider {request.provider_id}",
                    plan_id=str(plan.id),
                    provider_id=str(request.provider_id),
                )
            provider = await self.load_provider(plan.provider_id)
            coverage = await self.get_patient_coverage(request.patient_id, plan.id)
            window = benefit_year_window(now, self.eligibility.basis)
            prior_claims = await self.load_prior_claims(request.patient_id, plan.id, window)

            eligibility = self.eligibility.check_eligibility(
                plan, provider, prior_claims, coverage=coverage, as_of=now
            )
            if not eligibility.is_eligible:
                logger.warning(
                    f"Claim rejected for patient {request.patient_id}: {eligibility.reason.value}"
                )
                raise ClaimNotEligibleError(eligibility.reason, eligibility.message)

            lines = [
                LineItemInput(
                    item_id=item.item_id,
                    item_type=item.item_type,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
                for item in request.items
            ]
            result = self.calculator.compute_coverage(
                plan,
                lines,
                remaining_benefit=eligibility.remaining_benefit,
                provider_id=request.provider_id,
            )

            claim = Claim(
                id=uuid4(),
                claim_number=self._generate_claim_number(now),
                provider_id=provider.id,
                plan_id=plan.id,
                patient_id=request.patient_id,
                sale_id=request.sale_id,
                total_amount=result.total_amount,
                covered_amount=result.covered_amount,
                status=ClaimStatus.PENDING if request.draft else ClaimStatus.SUBMITTED,
                approval_required=result.approval_required,
                submitted_at=now,
                notes=request.notes,
                items=[
                    ClaimItem(
                        id=uuid4(),
                        line_number=line.line_number,
                        item_id=source.item_id,
                        item_type=source.item_type,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        line_total=line.line_total,
                        covered_amount=line.covered_amount,
                    )
                    for line, source in zip(result.per_line, request.items)
                ],
            )
            self.session.add(claim)
            await self.session.commit()

        logger.info(
            f"Created claim {claim.claim_number}: total={claim.total_amount}, "
            f"covered={claim.covered_amount}, status={claim.status.value}"
        )
        return InsuranceClaim.model_validate(claim)

    async def get_claim(self, claim_id: UUID) -> InsuranceClaim:
        return InsuranceClaim.model_validate(await self._get_claim_row(claim_id))

    async def list_claims(
        self,
        provider_id: Optional[UUID] = None,
        patient_id: Optional[UUID] = None,
        status: Optional[ClaimStatus] = None,
    ) -> list[InsuranceClaim]:
        query = select(Claim).order_by(Claim.submitted_at.desc())
        if provider_id is not None:
            query = query.where(Claim.provider_id == provider_id)
        if patient_id is not None:
            query = query.where(Claim.patient_id == patient_id)
        if status is not None:
            query = query.where(Claim.status == status)
        rows = await self.session.scalars(query)
        return [InsuranceClaim.model_validate(row) for row in rows]

    async def change_claim_status(
        self,
        claim_id: UUID,
        target_status: ClaimStatus,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
        approved_by: Optional[str] = None,
        rejection_reason: Optional[str] = None,
        payment_date: Optional[datetime] = None,
        payment_reference: Optional[str] = None,
    ) -> InsuranceClaim:
        """
        Move a claim to a new status through the state machine.

        Review details (reviewer, rejection reason, payment date and
        reference) are only accepted for the status they belong to.
        """
        row = await self._get_claim_row(claim_id)
        updated = self.state_machine.transition(
            InsuranceClaim.model_validate(row),
            target_status,
            notes=notes,
            now=now,
            approved_by=approved_by,
            rejection_reason=rejection_reason,
            payment_date=payment_date,
            payment_reference=payment_reference,
        )

        self._write_status(row, updated)
        await self.session.commit()

        claim_logger(updated.claim_number, __name__).info(
            f"Status changed to {updated.status.value}"
        )
        return updated

    async def adjust_claim_items(
        self,
        claim_id: UUID,
        adjustments: Sequence[ClaimItemAdjustment],
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
        approved_by: Optional[str] = None,
    ) -> InsuranceClaim:
        """Apply per-item reviewer decisions and re-adjudicate the claim."""
        row = await self._get_claim_row(claim_id)
        updated = update_claim_items(
            InsuranceClaim.model_validate(row),
            adjustments,
            notes=notes,
            now=now,
            approved_by=approved_by,
            state_machine=self.state_machine,
        )

        items = {item.id: item for item in updated.items}
        for item_row in row.items:
            item = items[item_row.id]
            item_row.approved_quantity = item.approved_quantity
            item_row.approved_amount = item.approved_amount
            item_row.rejection_reason = item.rejection_reason
        row.covered_amount = updated.covered_amount
        self._write_status(row, updated)
        await self.session.commit()

        claim_logger(updated.claim_number, __name__).info(
            f"Items adjudicated: covered={updated.covered_amount}, status={updated.status.value}"
        )
        return updated

    @staticmethod
    def _write_status(row: Claim, claim: InsuranceClaim) -> None:
        row.status = claim.status
        row.processed_at = claim.processed_at
        row.notes = claim.notes
        row.approved_by = claim.approved_by
        row.approval_date = claim.approval_date
        row.rejection_reason = claim.rejection_reason
        row.payment_date = claim.payment_date
        row.payment_reference = claim.payment_reference

    async def claim_statistics(
        self,
        provider_id: Optional[UUID] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> ClaimStatistics:
        """Claim counts and amounts, per provider when not filtered."""
        query = select(Claim)
        if provider_id is not None:
            query = query.where(Claim.provider_id == provider_id)
        if start is not None:
            query = query.where(Claim.submitted_at >= start)
        if end is not None:
            query = query.where(Claim.submitted_at <= end)
        claims = [InsuranceClaim.model_validate(row) for row in await self.session.scalars(query)]

        names = {
            provider.id: provider.name
            for provider in await self.session.scalars(select(Provider))
        }
        return get_claim_statistics(claims, provider_names=names, provider_id=provider_id)

    async def _get_claim_row(self, claim_id: UUID) -> Claim:
        claim = await self.session.get(Claim, claim_id)
        if claim is None:
            raise NotFoundError(f"Insurance claim with ID {claim_id} not found")
        return claim
