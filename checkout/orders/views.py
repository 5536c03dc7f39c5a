"""Vues du tunnel de commande.
- Page /commander (HTML): récapitulatif, formulaires par mode de paiement, retour de paiement
- Soumissions de formulaires /commander/{mode}: JSON {success, ...}, rate limit fail-closed
- API panier /api/v1/panier: ajout/suppression/quantités/options, prix issus du catalogue
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from starlette.status import HTTP_303_SEE_OTHER

import checkout.catalog.repository as catalog
from checkout import config as app_config
from checkout.orders import aggregator
from checkout.orders.cart import SessionCart
from checkout.orders.controller import (
    PAYMENT_MODES,
    CheckoutSession,
    remember_legacy_order,
    submit_appointment,
    submit_payment,
)
from checkout.orders.models import LegacyOrder
from checkout.orders.reconciler import reconcile_return
from checkout.payments.validator import ACTIVE_ACCESSORY_STATUS, SELLABLE_INSTRUMENT_STATUSES
from checkout.pricing import SHIPPING_METHODS, custom_price_floor, discounted_price
from checkout.utils.client_ip import get_client_ip
from checkout.utils.rate_limit import rate_limit
from checkout.utils.templates import templates

logger = logging.getLogger(__name__)

web_router = APIRouter(tags=["Commande Pages"])
api_router = APIRouter(prefix="/api/v1/panier", tags=["Panier API"])

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _no_store(resp):
    for k, v in NO_STORE_HEADERS.items():
        resp.headers[k] = v
    return resp


# module checkout.orders.views
@web_router.get("/commander", response_class=HTMLResponse)
@web_router.get("/commander.html", response_class=HTMLResponse)
def commander_page(request: Request):
    """Page de commande.
    - ?status=...: retour de la passerelle (confirmation, annulation, erreur)
    - panier non vide: mode panier, prioritaire sur les paramètres d'URL
    - ?from=panier avec panier vide: redirection vers la boutique
    - sinon: commande unitaire depuis les paramètres d'URL
    """
    checkout = CheckoutSession.from_request(request)
    params = request.query_params

    outcome = reconcile_return(params, checkout.pending)
    if outcome and outcome["status"] == "success":
        resp = templates.TemplateResponse(request, "confirmation.html", {"outcome": outcome})
        return _no_store(resp)

    source = aggregator.resolve_order_source(params, checkout.cart)
    if source is None:
        return RedirectResponse(url=app_config.CATALOG_PATH, status_code=HTTP_303_SEE_OTHER)
    if isinstance(source, LegacyOrder) and outcome is not None:
        # Retour annulé/erreur: la commande unitaire mémorisée reste celle à réessayer
        snapshot = checkout.snapshot()
        if snapshot.is_empty:
            snapshot = aggregator.normalize(source)
    else:
        if isinstance(source, LegacyOrder):
            remember_legacy_order(request.session, source.order)
            if source.order.shipping_method in SHIPPING_METHODS:
                checkout.set_shipping_method(source.order.shipping_method)
        snapshot = aggregator.normalize(source)

    summary = aggregator.compute_summary(snapshot, checkout.shipping_method, checkout.pricing)
    resp = templates.TemplateResponse(
        request,
        "commander.html",
        {
            "summary": summary,
            "outcome": outcome,
            "capability": checkout.capability.value,
            "pricing": checkout.pricing,
            "cart_mode": source.kind == "cart",
            "contact_email": app_config.ORDER_CONTACT_EMAIL,
        },
    )
    return _no_store(resp)


@web_router.post("/commander/livraison")
async def choose_shipping(request: Request):
    """Choix du mode de livraison; renvoie le récapitulatif recalculé."""
    form = await request.form()
    checkout = CheckoutSession.from_request(request)
    checkout.set_shipping_method(str(form.get("shipping_method") or form.get("livraison") or "") or None)
    return JSONResponse({"success": True, "summary": checkout.summary()})


@web_router.post("/commander/articles/{item_id}/supprimer")
def remove_checkout_item(request: Request, item_id: str):
    """Retire une ligne depuis la page de commande; panier vidé = retour boutique."""
    checkout = CheckoutSession.from_request(request)
    checkout.cart.remove_item(item_id)
    if checkout.cart.is_empty():
        return JSONResponse({"success": True, "redirect": app_config.CATALOG_PATH})
    return JSONResponse({"success": True, "summary": checkout.summary()})


@web_router.post(
    "/commander/rdv",
    dependencies=[Depends(rate_limit("commander-rdv", max_requests=5, fail_closed=True))],
)
async def appointment_submit(request: Request):
    form = await request.form()
    checkout = CheckoutSession.from_request(request)
    result = submit_appointment(checkout, form, client_ip=get_client_ip(request))
    return JSONResponse(result, status_code=200 if result.get("success") else 400)


@web_router.post(
    "/commander/{mode}",
    dependencies=[Depends(rate_limit("payplug-create-payment", max_requests=10, fail_closed=True))],
)
async def payment_submit(request: Request, mode: str):
    """
    Soumission d'un formulaire de paiement (full | acompte | installments).
    - Succès: {success, paymentUrl, reference, ...}; le panier est vidé, la commande en attente écrite
    - Échec: {success: false, error, field?}; aucun état modifié
    """
    if mode not in PAYMENT_MODES:
        raise HTTPException(status_code=404, detail="Mode de paiement inconnu")
    form = await request.form()
    checkout = CheckoutSession.from_request(request)
    result = submit_payment(checkout, form, mode, client_ip=get_client_ip(request))
    return JSONResponse(result, status_code=200 if result.get("success") else 400)


def _cart_response(cart: SessionCart, **extra) -> JSONResponse:
    snapshot = cart.snapshot()
    return JSONResponse({"success": True, "cart": snapshot.to_dict(), **extra})


def _housse_option(housse_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if not housse_id:
        return None
    record = catalog.fetch_accessoire(housse_id)
    if not record or record.get("statut") != ACTIVE_ACCESSORY_STATUS:
        raise HTTPException(status_code=404, detail="Housse introuvable")
    return {"type": "housse", "id": str(record["id"]), "nom": record.get("nom") or "Housse", "price": float(record.get("prix") or 0)}


@api_router.get("")
def get_cart(request: Request):
    checkout = CheckoutSession.from_request(request)
    return JSONResponse({"success": True, "cart": checkout.cart.snapshot().to_dict(), "summary": checkout.summary()})


@api_router.post("/instruments")
def add_instrument(request: Request, payload: Dict[str, Any] = Body(...)):
    """Ajoute un instrument en stock; prix = prix catalogue remisé."""
    instrument = catalog.fetch_instrument(str(payload.get("id") or ""))
    if not instrument or instrument.get("statut") not in SELLABLE_INSTRUMENT_STATUSES:
        raise HTTPException(status_code=404, detail="Instrument indisponible")
    cart = SessionCart(request.session)
    item = cart.add_instrument(
        {**instrument, "prix": discounted_price(instrument.get("prix_vente"), instrument.get("promo_percent"))},
        housse=_housse_option(payload.get("housse")),
    )
    return _cart_response(cart, item=item.to_dict())


@api_router.post("/accessoires")
def add_accessoire(request: Request, payload: Dict[str, Any] = Body(...)):
    record = catalog.fetch_accessoire(str(payload.get("id") or ""))
    if not record or record.get("statut") != ACTIVE_ACCESSORY_STATUS:
        raise HTTPException(status_code=404, detail="Accessoire indisponible")
    cart = SessionCart(request.session)
    try:
        quantity = int(payload.get("quantity") or 1)
    except (TypeError, ValueError):
        quantity = 1
    item = cart.add_accessoire(record, quantity=quantity)
    return _cart_response(cart, item=item.to_dict())


@api_router.post("/sur-mesure")
def add_custom(request: Request, payload: Dict[str, Any] = Body(...)):
    """Ajoute une configuration sur mesure; prix jamais inférieur au plancher recalculé."""
    checkout = CheckoutSession.from_request(request)
    try:
        note_count = int(payload.get("noteCount")) if payload.get("noteCount") is not None else None
    except (TypeError, ValueError):
        note_count = None
    floor = custom_price_floor(note_count, checkout.pricing.prix_par_note, catalog.fetch_size_malus(payload.get("taille")))
    try:
        declared = float(payload.get("prix") or 0)
    except (TypeError, ValueError):
        declared = 0
    item = checkout.cart.add_custom(
        {**payload, "noteCount": note_count, "prix": max(declared, floor)},
        housse=_housse_option(payload.get("housse")),
    )
    return _cart_response(checkout.cart, item=item.to_dict())


@api_router.patch("/items/{item_id}")
def update_item_quantity(request: Request, item_id: str, payload: Dict[str, Any] = Body(...)):
    cart = SessionCart(request.session)
    if cart.get(item_id) is None:
        raise HTTPException(status_code=404, detail="Article introuvable")
    try:
        quantity = int(payload.get("quantity"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Quantité invalide")
    cart.update_quantity(item_id, quantity)
    return _cart_response(cart)


@api_router.put("/items/{item_id}/housse")
def set_item_housse(request: Request, item_id: str, payload: Dict[str, Any] = Body(default={})):
    """Ajoute/remplace la housse d'une ligne; {"id": null} la retire."""
    cart = SessionCart(request.session)
    if cart.get(item_id) is None:
        raise HTTPException(status_code=404, detail="Article introuvable")
    cart.update_item_option(item_id, _housse_option(payload.get("id")))
    return _cart_response(cart)


@api_router.delete("/items/{item_id}")
def delete_item(request: Request, item_id: str):
    cart = SessionCart(request.session)
    if not cart.remove_item(item_id):
        raise HTTPException(status_code=404, detail="Article introuvable")
    return _cart_response(cart)


@api_router.delete("")
def clear_cart(request: Request):
    cart = SessionCart(request.session)
    cart.clear()
    return _cart_response(cart)
