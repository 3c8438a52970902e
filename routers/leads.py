from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from db import SessionLocal
from deps.auth import require_admin
from models import Lead
from schemas.leads import LeadCreate, LeadOut, LeadUpdate

router = APIRouter(prefix="/leads", tags=["leads"])


@router.post("", response_model=LeadOut, status_code=201)
def create_lead(req: LeadCreate):
    # Public: the landing page form posts here without any credentials
    with SessionLocal() as db:
        lead = Lead(**req.model_dump(), status="new")
        db.add(lead)
        db.commit()
        db.refresh(lead)
        return LeadOut.model_validate(lead)


@router.get("", response_model=List[LeadOut], dependencies=[Depends(require_admin)])
def list_leads(limit: int = 100):
    limit = max(1, min(limit, 500))
    with SessionLocal() as db:
        rows = db.query(Lead).order_by(Lead.created_at.desc(), Lead.id.desc()).limit(limit).all()
        return [LeadOut.model_validate(x) for x in rows]


@router.patch("/{lead_id}", response_model=LeadOut, dependencies=[Depends(require_admin)])
def update_lead(lead_id: int, req: LeadUpdate):
    with SessionLocal() as db:
        lead = db.get(Lead, lead_id)
        if not lead:
            raise HTTPException(status_code=404, detail="Lead not found")
        lead.status = req.status
        db.commit()
        db.refresh(lead)
        return LeadOut.model_validate(lead)
