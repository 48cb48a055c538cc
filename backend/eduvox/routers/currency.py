from fastapi import APIRouter, Depends, HTTPException, Query

from eduvox.dependencies.services import get_currency_service
from eduvox.services.currency import (
    CurrencyService,
    format_currency,
    get_supported_currencies,
)

router = APIRouter(prefix="/api/currency", tags=["currency"])


@router.get("/rates")
def rates(service: CurrencyService = Depends(get_currency_service)):
    """USD-based rates, refreshed at most once a day."""
    return service.get_current_rates()


@router.get("/convert")
def convert(
    amount: float = Query(..., ge=0),
    from_currency: str = Query("USD", alias="from", min_length=3, max_length=3),
    to_currency: str = Query("INR", alias="to", min_length=3, max_length=3),
    service: CurrencyService = Depends(get_currency_service)
):
    try:
        converted = service.convert(amount, from_currency.upper(), to_currency.upper())
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Currency conversion failed: {str(e)}")

    return {
        "amount": amount,
        "from": from_currency.upper(),
        "to": to_currency.upper(),
        "converted": converted,
        "formatted": format_currency(converted, to_currency.upper()),
    }


@router.get("/supported")
def supported():
    return {"currencies": get_supported_currencies()}
