"""
Module 'payments' (feature-first): point d'entrée public.
Réunit la validation anti-fraude, la construction du payload PayPlug, le client PayPlug et l'orchestration.
"""

from .reference import generate_order_reference, clean_reference
from .validator import ValidatedLine, ValidatedOrder, validate_order, validate_item
from .payload import build_payplug_payload, delivery_type, oney_cart, sanitize
from .payplug_client import is_configured, require_payplug, create_payment as gateway_create_payment, get_payment
from .service import create_payment, validate_customer, check_amount_bounds

__all__ = [
    # reference
    "generate_order_reference",
    "clean_reference",
    # validator
    "ValidatedLine",
    "ValidatedOrder",
    "validate_order",
    "validate_item",
    # payload
    "build_payplug_payload",
    "delivery_type",
    "oney_cart",
    "sanitize",
    # payplug
    "is_configured",
    "require_payplug",
    "gateway_create_payment",
    "get_payment",
    # services
    "create_payment",
    "validate_customer",
    "check_amount_bounds",
]
