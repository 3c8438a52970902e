from fastapi import APIRouter, Depends, HTTPException

from db import SessionLocal
from deps.auth import require_client
from models import QuizAttempt
from schemas.attempts import AttemptOut

router = APIRouter(prefix="/attempts", tags=["attempts"])


@router.get("/recent-list", dependencies=[Depends(require_client)])
def attempts_recent(limit: int = 20):
    limit = max(1, min(limit, 100))

    with SessionLocal() as db:
        items = (
            db.query(QuizAttempt)
            .order_by(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc())
            .limit(limit)
            .all()
        )

    # Reuse schema; exclude the per-question answer map in list views
    rows = [AttemptOut.model_validate(a).model_dump(exclude={"answers"}) for a in items]
    return {"ok": True, "items": rows, "count": len(rows)}


@router.get("/{attempt_id}", response_model=AttemptOut, dependencies=[Depends(require_client)])
def get_attempt(attempt_id: int):
    with SessionLocal() as db:
        a = db.get(QuizAttempt, attempt_id)
        if not a:
            raise HTTPException(status_code=404, detail="Attempt not found")
        return AttemptOut.model_validate(a)
