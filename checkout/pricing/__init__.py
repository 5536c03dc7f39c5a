"""
Module 'pricing': point d'entrée public.
Réunit la configuration tarifaire, les primitives de prix et les formules partagées client/serveur.
"""

from .config import PricingConfig, DEFAULT_PRICING, pricing_from_dict, load_pricing_config
from .primitives import (
    SHIPPING_COLISSIMO,
    SHIPPING_RETRAIT,
    SHIPPING_METHODS,
    MINOR_UNIT_FACTOR,
    ONEY_GATEWAY_MIN,
    ONEY_GATEWAY_MAX,
    shipping_cost,
    total_with_shipping,
    deposit_amount,
    installment_split,
    installment_schedule,
    installment_bounds,
    is_installment_eligible,
    to_minor_units,
    from_minor_units,
    format_price,
    format_amount,
)
from .rules import (
    PRICING_RULES_VERSION,
    MIN_NOTES,
    MAX_NOTES,
    round_down_to_step,
    discounted_price,
    custom_price_floor,
    is_supported_note_count,
)

__all__ = [
    # config
    "PricingConfig",
    "DEFAULT_PRICING",
    "pricing_from_dict",
    "load_pricing_config",
    # primitives
    "SHIPPING_COLISSIMO",
    "SHIPPING_RETRAIT",
    "SHIPPING_METHODS",
    "MINOR_UNIT_FACTOR",
    "ONEY_GATEWAY_MIN",
    "ONEY_GATEWAY_MAX",
    "shipping_cost",
    "total_with_shipping",
    "deposit_amount",
    "installment_split",
    "installment_schedule",
    "installment_bounds",
    "is_installment_eligible",
    "to_minor_units",
    "from_minor_units",
    "format_price",
    "format_amount",
    # rules
    "PRICING_RULES_VERSION",
    "MIN_NOTES",
    "MAX_NOTES",
    "round_down_to_step",
    "discounted_price",
    "custom_price_floor",
    "is_supported_note_count",
]
