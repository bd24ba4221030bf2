"""Shipping address normalization at the API boundary.

Older storefront clients post addresses with different field names
(``province``, ``zipCode``, ``firstName``/``lastName`` ...). They are mapped
onto the canonical snake_case names here, once, so the Order aggregate only
ever sees one shape. A canonical name present in the payload always wins
over its legacy alias.
"""

_ALIASES = {
    "full_name": ("fullName",),
    "phone": ("phoneNumber", "phone_number"),
    "street": ("address", "streetAddress", "street_address"),
    "city": (),
    "state": ("province",),
    "postal_code": ("postalCode", "zipCode", "zip_code", "zip"),
    "country": (),
    "email": (),
    "additional_info": ("additionalInfo",),
}


def normalize_address(raw: dict | None) -> dict:
    """Return ``raw`` mapped onto canonical address field names.

    Blank strings count as missing. Unknown keys are dropped.
    """
    raw = {key: value for key, value in (raw or {}).items() if value not in (None, "")}
    normalized = {}

    for field, aliases in _ALIASES.items():
        for key in (field, *aliases):
            if key in raw:
                normalized[field] = raw[key].strip() if isinstance(raw[key], str) else raw[key]
                break

    if "full_name" not in normalized:
        first = str(raw.get("firstName") or raw.get("first_name") or "").strip()
        last = str(raw.get("lastName") or raw.get("last_name") or "").strip()
        if first or last:
            normalized["full_name"] = f"{first} {last}".strip()

    if "country" not in normalized and normalized:
        normalized["country"] = "IR"

    return normalized
