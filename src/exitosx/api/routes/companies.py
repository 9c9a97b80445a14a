"""Company CRUD, core factors and EBITDA adjustment routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from exitosx.api.deps import CompanyAccess, get_current_user, get_db, require_company, require_granular
from exitosx.auth.permissions import has_permission
from exitosx.industries import build_industry_path, find_by_sub_sector
from exitosx.models.db import Company, CoreFactors, EbitdaAdjustment, WorkspaceMember
from exitosx.models.schemas import (
    AdjustmentCreate,
    AdjustmentResponse,
    CompanyCreate,
    CompanyListResponse,
    CompanyResponse,
    CompanyUpdate,
    CoreFactorsResponse,
    CoreFactorsUpdate,
)
from exitosx.valuation.bri import DEFAULT_CATEGORY_WEIGHTS
from exitosx.valuation.industry_multiples import get_industry_multiples

router = APIRouter()


def _apply_sub_sector(company: Company, code: str) -> None:
    option = find_by_sub_sector(code)
    if option is None:
        raise HTTPException(status_code=400, detail=f"Unknown industry sub-sector: {code}")
    company.icb_industry = option.icb_industry
    company.icb_super_sector = option.icb_super_sector
    company.icb_sector = option.icb_sector
    company.icb_sub_sector = option.icb_sub_sector


@router.post("/companies", response_model=CompanyResponse, status_code=201)
async def create_company(
    data: CompanyCreate,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Create a company in one of the caller's workspaces."""
    if not user.is_super_admin:
        result = await session.execute(
            select(WorkspaceMember).where(
                WorkspaceMember.workspace_id == data.workspace_id,
                WorkspaceMember.user_id == user.id,
            )
        )
        member = result.scalar_one_or_none()
        if member is None or not has_permission(member.role, "COMPANY_CREATE"):
            raise HTTPException(status_code=403, detail="You do not have permission to create companies")

    company = Company(
        workspace_id=data.workspace_id,
        name=data.name,
        business_description=data.business_description,
        annual_revenue=data.annual_revenue,
        annual_ebitda=data.annual_ebitda,
        owner_compensation=data.owner_compensation,
    )
    _apply_sub_sector(company, data.icb_sub_sector)
    session.add(company)
    await session.flush()
    await session.refresh(company)
    return company


@router.get("/companies", response_model=CompanyListResponse)
async def list_companies(
    skip: int = 0,
    limit: int = 50,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """List companies in every workspace the caller belongs to."""
    query = select(Company)
    if not user.is_super_admin:
        workspace_ids = select(WorkspaceMember.workspace_id).where(WorkspaceMember.user_id == user.id)
        query = query.where(Company.workspace_id.in_(workspace_ids))

    total = (await session.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
    result = await session.execute(query.order_by(Company.created_at.desc()).offset(skip).limit(limit))
    return CompanyListResponse(items=result.scalars().all(), total=total)


@router.get("/companies/{company_id}")
async def get_company(access: CompanyAccess = Depends(require_company())):
    company = access.company
    return {
        **CompanyResponse.model_validate(company).model_dump(mode="json"),
        "industry_path": build_industry_path(company),
        "role": access.role,
    }


@router.patch("/companies/{company_id}", response_model=CompanyResponse)
async def update_company(
    data: CompanyUpdate,
    access: CompanyAccess = Depends(require_company("COMPANY_UPDATE")),
    session: AsyncSession = Depends(get_db),
):
    """Update a company; a new sub-sector re-derives the ICB ancestry."""
    company = access.company
    update_data = data.model_dump(exclude_unset=True)

    sub_sector = update_data.pop("icb_sub_sector", None)
    if sub_sector:
        _apply_sub_sector(company, sub_sector)

    weights = update_data.pop("bri_weights", None)
    if weights is not None:
        merged = {**DEFAULT_CATEGORY_WEIGHTS, **weights}
        if abs(sum(merged.values()) - 1.0) > 0.01:
            raise HTTPException(status_code=400, detail="BRI weights must sum to 1.0")
        company.bri_weights = merged
    elif "bri_weights" in data.model_fields_set:
        company.bri_weights = None

    for key, value in update_data.items():
        setattr(company, key, value)

    await session.flush()
    await session.refresh(company)
    return company


@router.delete("/companies/{company_id}", status_code=204)
async def delete_company(
    access: CompanyAccess = Depends(require_company("COMPANY_DELETE")),
    session: AsyncSession = Depends(get_db),
):
    await session.delete(access.company)


# ── Core factors ──────────────────────────────────────────────────────────────


@router.get("/companies/{company_id}/core-factors", response_model=CoreFactorsResponse | None)
async def get_core_factors(
    access: CompanyAccess = Depends(require_company()),
    session: AsyncSession = Depends(get_db),
):
    result = await session.execute(select(CoreFactors).where(CoreFactors.company_id == access.company.id))
    return result.scalar_one_or_none()


@router.put("/companies/{company_id}/core-factors", response_model=CoreFactorsResponse)
async def upsert_core_factors(
    data: CoreFactorsUpdate,
    access: CompanyAccess = Depends(require_company("COMPANY_UPDATE")),
    session: AsyncSession = Depends(get_db),
):
    """Create or update the company's core factors."""
    result = await session.execute(select(CoreFactors).where(CoreFactors.company_id == access.company.id))
    factors = result.scalar_one_or_none()
    if factors is None:
        factors = CoreFactors(company_id=access.company.id)
        session.add(factors)

    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(factors, key, value)

    await session.flush()
    await session.refresh(factors)
    return factors


# ── EBITDA adjustments ────────────────────────────────────────────────────────


@router.get("/companies/{company_id}/adjustments", response_model=list[AdjustmentResponse])
async def list_adjustments(
    access: CompanyAccess = Depends(require_company()),
    session: AsyncSession = Depends(get_db),
):
    require_granular(access, "financials.adjustments:view")
    result = await session.execute(
        select(EbitdaAdjustment)
        .where(EbitdaAdjustment.company_id == access.company.id)
        .order_by(EbitdaAdjustment.created_at)
    )
    return result.scalars().all()


@router.post("/companies/{company_id}/adjustments", response_model=AdjustmentResponse, status_code=201)
async def create_adjustment(
    data: AdjustmentCreate,
    access: CompanyAccess = Depends(require_company("COMPANY_UPDATE")),
    session: AsyncSession = Depends(get_db),
):
    """Record an add-back or deduction against EBITDA."""
    require_granular(access, "financials.adjustments:edit")
    adjustment = EbitdaAdjustment(company_id=access.company.id, **data.model_dump())
    session.add(adjustment)
    await session.flush()
    await session.refresh(adjustment)
    return adjustment


@router.delete("/companies/{company_id}/adjustments/{adjustment_id}", status_code=204)
async def delete_adjustment(
    adjustment_id: uuid.UUID,
    access: CompanyAccess = Depends(require_company("COMPANY_UPDATE")),
    session: AsyncSession = Depends(get_db),
):
    require_granular(access, "financials.adjustments:edit")
    result = await session.execute(
        select(EbitdaAdjustment).where(
            EbitdaAdjustment.id == adjustment_id,
            EbitdaAdjustment.company_id == access.company.id,
        )
    )
    adjustment = result.scalar_one_or_none()
    if not adjustment:
        raise HTTPException(status_code=404, detail="Adjustment not found")
    await session.delete(adjustment)


# ── Industry multiples ────────────────────────────────────────────────────────


@router.get("/companies/{company_id}/multiples")
async def get_company_multiples(
    access: CompanyAccess = Depends(require_company()),
    session: AsyncSession = Depends(get_db),
):
    """Most specific industry multiples available for the company."""
    company = access.company
    multiples = await get_industry_multiples(
        session, company.icb_sub_sector, company.icb_sector, company.icb_super_sector, company.icb_industry
    )
    return {**multiples.to_dict(), "industry_path": build_industry_path(company)}
