from fastapi import APIRouter
from decimal import Decimal
from pydantic import BaseModel, Field

from dairydesk.modules.taxes.calculator import TaxEngine
from dairydesk.modules.taxes.schemas import TaxRates, TaxSplit, TaxMethod

taxes_router = APIRouter(prefix="/taxes", tags=["Taxes"])


class TaxSplitRequest(BaseModel):
    amount: Decimal = Field(..., ge=0)
    rates: TaxRates
    method: TaxMethod = TaxMethod.EXCLUSIVE


@taxes_router.post("/split", response_model=TaxSplit)
def split_amount(request: TaxSplitRequest):
    """
    Separar un monto en base gravable e impuesto

    Útil para previsualizar precios con impuesto incluido o excluido.
    """
    return TaxEngine.split(request.amount, request.rates, request.method)
