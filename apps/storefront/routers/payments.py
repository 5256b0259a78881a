"""Payment token issuance and redirect verification."""
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from apps.storefront.auth import get_current_admin
from apps.storefront.deps import get_db
from apps.storefront.errors import InvalidToken
from apps.storefront.models.admin import AdminUser
from apps.storefront.services import payment_reconciler
from apps.storefront.services.payment_tokens import parse_redirect_params

router = APIRouter()


class IssueTokenRequest(BaseModel):
    order_id: int


class VerifyTokenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str | None = None
    payment_data: dict[str, Any] = Field(default_factory=dict, alias="paymentData")


def _verify(db: Session, token: str | None, raw) -> dict:
    if not token:
        raise InvalidToken("missing_token")
    # isValid is recomputed here; the client's own verdict is ignored.
    params = parse_redirect_params(raw)
    result = payment_reconciler.reconcile(db, token, params)
    view = payment_reconciler.verification_view(result, params)
    return {"success": True, "state": view["state"], "result": result.to_dict(), "view": view}


@router.post("/tokens")
def issue_token(
    data: IssueTokenRequest,
    db: Session = Depends(get_db),
    _: AdminUser = Depends(get_current_admin),
):
    row = payment_reconciler.issue_payment_token(db, data.order_id)
    return {"token": row.token, "order_id": row.order_id, **payment_reconciler.redirect_urls(row.token)}


@router.post("/verify-token")
def verify_token(data: VerifyTokenRequest, db: Session = Depends(get_db)):
    return _verify(db, data.token, data.payment_data)


@router.get("/verify/success/{token}")
def verify_success(token: str, request: Request, db: Session = Depends(get_db)):
    return _verify(db, token, request.url.query)


@router.get("/verify/failed/{token}")
def verify_failed(token: str, request: Request, db: Session = Depends(get_db)):
    raw = dict(request.query_params)
    raw["status"] = "failed"
    return _verify(db, token, raw)
