from typing import Optional
from fastapi import APIRouter, Depends, Query
from app.api.dependencies import get_fun_fact_generator
from app.core.errors import InvalidPairException, ValidationException
from app.services.fun_fact_service import FunFactGenerator

router = APIRouter(prefix="/gemini", tags=["fun-facts"])


@router.get("/fun-facts")
async def get_currency_fun_facts(
    from_code: Optional[str] = Query(None, alias="from"),
    to_code: Optional[str] = Query(None, alias="to"),
    generator: FunFactGenerator = Depends(get_fun_fact_generator),
):
    """Trivia about a currency pair; falls back to a template if Gemini is unavailable"""
    from_code = (from_code or "").strip().upper()
    to_code = (to_code or "").strip().upper()
    if not from_code or not to_code:
        raise ValidationException('Both "from" and "to" currency codes are required.')
    if from_code == to_code:
        raise InvalidPairException("From and to currencies must be different.")

    fact = await generator.get_fun_fact(from_code, to_code)
    return {"success": True, "data": fact.to_dict()}
