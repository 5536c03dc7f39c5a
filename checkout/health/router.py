from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from checkout.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root(request: Request):
    capability = getattr(request.app.state, "payment_capability", None)
    return {"ok": True, "payment": getattr(capability, "value", None)}

@router.get("/rate-limit")
def health_rate_limit(request: Request):
    return JSONResponse(rate_limit_health_info(request))
