from fastapi import APIRouter, Depends, HTTPException, status
import logging
import models
import schemas
from routers.utils import get_current_user
from services.amadeus_service import AmadeusError, get_amadeus_client

logger = logging.getLogger(__name__)

router = APIRouter()


def validate_search(origin: str, max_price):
    if not origin:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="origin is required")
    if max_price is not None and max_price <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="maxPrice must be positive")


def upstream_failed(e: AmadeusError) -> HTTPException:
    logger.error(f"Flight search failed: {e}")
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Failed to get flight data: {e.detail}"
    )


@router.post("/flight-inspiration", response_model=schemas.FlightSearchResponse)
def flight_inspiration(
    body: schemas.FlightInspirationRequest,
    current_user: models.User = Depends(get_current_user)
):
    """Cheapest destinations from an origin airport (IATA code)."""
    validate_search(body.origin, body.max_price)
    try:
        flights = get_amadeus_client().search_destinations(
            body.origin,
            departure_date=body.departure_date,
            max_price=body.max_price,
            one_way=body.one_way,
            non_stop=body.non_stop,
        )
    except AmadeusError as e:
        raise upstream_failed(e)

    return {"flights": [f.to_dict() for f in flights]}


@router.post("/flight-dates", response_model=schemas.FlightSearchResponse)
def flight_dates(
    body: schemas.FlightDatesRequest,
    current_user: models.User = Depends(get_current_user)
):
    """Cheapest travel dates between two airports."""
    validate_search(body.origin, body.max_price)
    if not body.destination:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="destination is required")

    try:
        flights = get_amadeus_client().search_cheapest_dates(
            body.origin,
            body.destination,
            departure_date=body.departure_date,
            duration=body.duration,
            max_price=body.max_price,
            one_way=body.one_way,
            non_stop=body.non_stop,
        )
    except AmadeusError as e:
        raise upstream_failed(e)

    return {"flights": [f.to_dict() for f in flights]}
