"""
Unit price resolution: one catalog price column per pet size.
"""
from .exceptions import DomainRuleError
from .money import quantize_money

PRICE_FIELD_BY_SIZE = {
    "SMALL": "price_small",
    "MEDIUM": "price_medium",
    "LARGE": "price_large",
}


def resolve_unit_price(catalog_entry, pet_size):
    """
    Return the rounded unit price of catalog_entry for a pet of pet_size.

    Raises:
        ValueError: catalog_entry missing or pet_size unknown
        DomainRuleError: resolved price is not strictly positive (catalog misconfiguration)
    """
    if catalog_entry is None:
        raise ValueError("Catalog entry must not be None")
    field = PRICE_FIELD_BY_SIZE.get(pet_size)
    if field is None:
        raise ValueError(f"Unknown pet size: {pet_size!r}")

    price = quantize_money(getattr(catalog_entry, field))
    if price is None or price <= 0:
        raise DomainRuleError("Invalid catalog price for pet size.")
    return price
