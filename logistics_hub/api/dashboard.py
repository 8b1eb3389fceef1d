from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import FileResponse

from logistics_hub.auth.roles import ADMIN, fetch_user_role, home_route_for
from logistics_hub.auth.tokens import AuthenticatedUser
from logistics_hub.cache import clear_caches, transaction_pages
from logistics_hub.common.json_logger import JsonLogger, log_event
from logistics_hub.config import Config
from logistics_hub.customers import service as customer_service
from logistics_hub.customers.schemas import CustomerIn, PaymentRequest
from logistics_hub.errors import NotFoundError
from logistics_hub.payments.ledger import start_customer_payment
from logistics_hub.payments.transactions import fetch_transaction_page
from logistics_hub.proofs.service import list_proofs, submit_proof
from logistics_hub.proofs.storage import LocalObjectStorage
from logistics_hub.reports.pipeline import REPORT_KINDS, generate_report
from logistics_hub.shipments import service as shipment_service
from logistics_hub.shipments.schemas import ShipmentIn

from .deps import (
    courier_client,
    current_user,
    get_app_config,
    get_request_logger,
    payment_client,
    require_role,
)

router = APIRouter(prefix="/api", tags=["dashboard"])

admin_only = require_role(ADMIN)
signed_in = require_role(None)


@router.get("/me")
async def me(
    user: AuthenticatedUser = Depends(current_user),
    config: Config = Depends(get_app_config),
) -> Dict[str, Any]:
    role = await fetch_user_role(config.database_url, user.id)
    return {"id": user.id, "email": user.email, "role": role, "home": home_route_for(role)}


# customers


@router.get("/customers")
async def customers_index(
    config: Config = Depends(get_app_config), _: AuthenticatedUser = Depends(admin_only)
) -> List[Dict[str, Any]]:
    return await customer_service.list_customers(config.database_url)


@router.get("/customers/names")
async def customer_names(
    config: Config = Depends(get_app_config), _: AuthenticatedUser = Depends(signed_in)
) -> List[Dict[str, Any]]:
    return await customer_service.list_customer_names(config.database_url)


@router.get("/customers/{customer_id}")
async def customer_detail(
    customer_id: str,
    config: Config = Depends(get_app_config),
    _: AuthenticatedUser = Depends(admin_only),
) -> Dict[str, Any]:
    return await customer_service.get_customer(config.database_url, customer_id)


@router.post("/customers", status_code=201)
async def customer_create(
    payload: CustomerIn,
    config: Config = Depends(get_app_config),
    logger: JsonLogger = Depends(get_request_logger),
    user: AuthenticatedUser = Depends(admin_only),
) -> Dict[str, Any]:
    created = await customer_service.create_customer(config.database_url, payload)
    log_event(logger=logger, phase="api.customers", message="customer created", customer_id=created["id"], user_id=user.id)
    return created


@router.put("/customers/{customer_id}")
async def customer_update(
    customer_id: str,
    payload: CustomerIn,
    config: Config = Depends(get_app_config),
    logger: JsonLogger = Depends(get_request_logger),
    user: AuthenticatedUser = Depends(admin_only),
) -> Dict[str, Any]:
    updated = await customer_service.update_customer(config.database_url, customer_id, payload)
    log_event(logger=logger, phase="api.customers", message="customer updated", customer_id=customer_id, user_id=user.id)
    return updated


@router.delete("/customers/{customer_id}", status_code=204)
async def customer_delete(
    customer_id: str,
    config: Config = Depends(get_app_config),
    logger: JsonLogger = Depends(get_request_logger),
    user: AuthenticatedUser = Depends(admin_only),
) -> None:
    await customer_service.delete_customer(config.database_url, customer_id)
    log_event(logger=logger, phase="api.customers", message="customer deleted", customer_id=customer_id, user_id=user.id)


@router.post("/customers/{customer_id}/payments", status_code=201)
async def customer_payment(
    customer_id: str,
    payload: PaymentRequest,
    request: Request,
    config: Config = Depends(get_app_config),
    logger: JsonLogger = Depends(get_request_logger),
    _: AuthenticatedUser = Depends(admin_only),
) -> Dict[str, Any]:
    started = await start_customer_payment(
        config.database_url,
        payment_client(request),
        customer_id=customer_id,
        amount=payload.amount,
        return_url=payload.return_url,
        logger=logger,
    )
    return started.as_dict()


@router.get("/payments/transactions")
async def payment_transactions(
    request: Request,
    page: int = Query(default=1, ge=1),
    _: AuthenticatedUser = Depends(admin_only),
) -> Dict[str, Any]:
    result = await fetch_transaction_page(payment_client(request), transaction_pages, page)
    return result.as_dict()


# shipments


@router.get("/shipments")
async def shipments_index(
    config: Config = Depends(get_app_config), _: AuthenticatedUser = Depends(signed_in)
) -> List[Dict[str, Any]]:
    return await shipment_service.list_shipments(config.database_url)


@router.post("/shipments", status_code=201)
async def shipment_create(
    payload: ShipmentIn,
    config: Config = Depends(get_app_config),
    logger: JsonLogger = Depends(get_request_logger),
    user: AuthenticatedUser = Depends(admin_only),
) -> Dict[str, Any]:
    created = await shipment_service.create_shipment(config.database_url, payload)
    log_event(logger=logger, phase="api.shipments", message="shipment created", tracking_id=created["tracking_id"], user_id=user.id)
    return created


@router.put("/shipments/{shipment_id}")
async def shipment_update(
    shipment_id: str,
    payload: ShipmentIn,
    config: Config = Depends(get_app_config),
    _: AuthenticatedUser = Depends(admin_only),
) -> Dict[str, Any]:
    return await shipment_service.update_shipment(config.database_url, shipment_id, payload)


@router.delete("/shipments/{shipment_id}", status_code=204)
async def shipment_delete(
    shipment_id: str,
    config: Config = Depends(get_app_config),
    _: AuthenticatedUser = Depends(admin_only),
) -> None:
    await shipment_service.delete_shipment(config.database_url, shipment_id)


@router.post("/shipments/{tracking_id}/track")
async def shipment_track(
    tracking_id: str,
    request: Request,
    config: Config = Depends(get_app_config),
    logger: JsonLogger = Depends(get_request_logger),
    _: AuthenticatedUser = Depends(signed_in),
) -> Dict[str, Any]:
    result = await shipment_service.track_shipment(
        config.database_url, tracking_id, courier_client(request), logger=logger
    )
    return result.as_dict()


@router.get("/dashboard/metrics")
async def metrics(
    config: Config = Depends(get_app_config), _: AuthenticatedUser = Depends(admin_only)
) -> Dict[str, Any]:
    return await shipment_service.dashboard_metrics(config.database_url)


@router.get("/map/features")
async def map_feed(
    config: Config = Depends(get_app_config), _: AuthenticatedUser = Depends(signed_in)
) -> Dict[str, Any]:
    return await shipment_service.map_features(config.database_url)


# proof of delivery


@router.post("/proofs", status_code=201)
async def proof_upload(
    tracking_id: str = Form(...),
    image: UploadFile = File(...),
    notes: str | None = Form(default=None),
    config: Config = Depends(get_app_config),
    logger: JsonLogger = Depends(get_request_logger),
    user: AuthenticatedUser = Depends(signed_in),
) -> Dict[str, Any]:
    storage = LocalObjectStorage(config.storage_root, config.storage_public_url)
    proof = await submit_proof(
        config.database_url,
        storage,
        tracking_id=tracking_id,
        filename=image.filename or "",
        data=await image.read(),
        user_id=user.id,
        notes=notes,
    )
    log_event(logger=logger, phase="api.proofs", message="proof uploaded", tracking_id=proof["tracking_id"], user_id=user.id)
    return proof


@router.get("/proofs")
async def proofs_index(
    search: str | None = Query(default=None),
    config: Config = Depends(get_app_config),
    _: AuthenticatedUser = Depends(admin_only),
) -> List[Dict[str, Any]]:
    return await list_proofs(config.database_url, search=search)


# reports and maintenance


@router.get("/reports/{kind}.pdf")
async def report_pdf(
    kind: str,
    config: Config = Depends(get_app_config),
    logger: JsonLogger = Depends(get_request_logger),
    user: AuthenticatedUser = Depends(admin_only),
) -> FileResponse:
    if kind not in REPORT_KINDS:
        raise NotFoundError("report", kind)
    path = await generate_report(kind, config=config, created_by=user.id, logger=logger)
    return FileResponse(path, media_type="application/pdf", filename=f"{kind}-report.pdf")


@router.post("/cache/clear")
async def cache_clear(
    logger: JsonLogger = Depends(get_request_logger),
    user: AuthenticatedUser = Depends(admin_only),
) -> Dict[str, Any]:
    cleared = clear_caches()
    log_event(logger=logger, phase="api.cache", message="caches cleared", caches=cleared, user_id=user.id)
    return {"cleared": cleared}
