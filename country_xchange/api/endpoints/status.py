from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from country_xchange.database import get_db
from country_xchange.models import Country
from country_xchange.schemas import StatusResponse

# Initialize the router
router = APIRouter(
    prefix="/status",
    tags=["Status"],
)


@router.get("", response_model=StatusResponse, summary="Get cache size and last refresh time.")
def read_status(db: Session = Depends(get_db)):
    """
    Total cached countries and the most recent refresh timestamp (null before the first refresh).
    """
    total = db.query(func.count(Country.id)).scalar() or 0
    last_refresh = db.query(func.max(Country.last_refreshed_at)).scalar()
    return StatusResponse(total_countries=total, last_refreshed_at=last_refresh)
