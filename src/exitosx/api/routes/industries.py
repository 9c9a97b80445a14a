"""ICB taxonomy and business classification routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from exitosx.agents.business_classifier import BusinessClassifier
from exitosx.api.deps import authorize_company, get_current_user, get_db
from exitosx.industries import search_industries
from exitosx.models.schemas import ClassifyRequest

router = APIRouter()


@router.get("/industries")
async def list_industries(q: str | None = Query(None, max_length=200)):
    """Flattened sub-sector options, optionally filtered by a search query."""
    options = search_industries(q)
    return {"items": [o.to_dict() for o in options], "total": len(options)}


@router.post("/industries/classify")
async def classify_business(
    data: ClassifyRequest,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Suggest an ICB sub-sector for a business description."""
    if data.company_id is not None:
        await authorize_company(session, user, data.company_id, "COMPANY_VIEW")
    classifier = BusinessClassifier()
    result = await classifier.classify(session, data.description, company_id=data.company_id)
    return result.to_dict()
