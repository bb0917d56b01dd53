import os
from typing import List, Optional

import httpx
from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import FileResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from country_xchange.core.image_generator import summary_image_path
from country_xchange.core.logic import refresh_countries
from country_xchange.core.sources import get_http_client
from country_xchange.database import get_db
from country_xchange.exceptions import NotFoundError, ValidationError
from country_xchange.models import Country, normalize_name
from country_xchange.schemas import CountryResponse, ErrorResponse, RefreshResponse

# Initialize the router
router = APIRouter(
    prefix="/countries",
    tags=["Countries"],
)

# Countries without a GDP sort last in both directions on every backend
SORT_OPTIONS = {
    "gdp_desc": (Country.estimated_gdp.is_(None), Country.estimated_gdp.desc()),
    "gdp_asc": (Country.estimated_gdp.is_(None), Country.estimated_gdp.asc()),
    "name_asc": (Country.name.asc(),),
    "name_desc": (Country.name.desc(),),
}


def _get_country_or_404(db: Session, name: str) -> Country:
    country = (
        db.query(Country).filter(Country.name_lower == normalize_name(name)).first()
    )
    if country is None:
        raise NotFoundError("Country", name)
    return country


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Fetch all countries and exchange rates and cache them.",
)
async def refresh(
    db: Session = Depends(get_db),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    result = await refresh_countries(db, client)
    return RefreshResponse(
        message="Countries refreshed successfully",
        total_countries=result.total_countries,
        last_refreshed_at=result.last_refreshed_at,
    )


@router.get(
    "",
    response_model=List[CountryResponse],
    summary="Retrieve cached countries with optional filters and sorting.",
)
def read_countries(
    db: Session = Depends(get_db),
    region: Optional[str] = Query(None, description="Filter by region, e.g. Africa"),
    currency: Optional[str] = Query(
        None, description="Filter by currency code, e.g. NGN"
    ),
    sort: Optional[str] = Query(
        None, description="One of gdp_desc, gdp_asc, name_asc, name_desc"
    ),
):
    """
    Filters compose with AND and compare case-insensitively; absent filters match everything.
    """
    if sort is not None and sort not in SORT_OPTIONS:
        raise ValidationError(
            "Invalid sort value",
            {"sort": f"must be one of {', '.join(SORT_OPTIONS)}"},
        )

    query = db.query(Country)
    if region:
        query = query.filter(func.lower(Country.region) == region.lower())
    if currency:
        query = query.filter(func.lower(Country.currency_code) == currency.lower())

    if sort:
        query = query.order_by(*SORT_OPTIONS[sort], Country.id)
    else:
        query = query.order_by(Country.id)

    return query.all()


@router.get(
    "/image",
    response_class=FileResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Serve the summary image generated by the last refresh.",
)
def read_summary_image():
    image_path = summary_image_path()
    if not os.path.exists(image_path):
        raise NotFoundError("Summary image")
    return FileResponse(image_path, media_type="image/png")


@router.get(
    "/{name}",
    response_model=CountryResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Retrieve a single country by name.",
)
def read_country(name: str, db: Session = Depends(get_db)):
    return _get_country_or_404(db, name)


@router.delete(
    "/{name}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a country by name.",
)
def delete_country(name: str, db: Session = Depends(get_db)):
    country = _get_country_or_404(db, name)
    db.delete(country)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
