"""Product import from the plain comma separated line sheet format.

The format is deliberately simple: the first line is a header and is
discarded, every other line holds at least six comma separated values in the
order code, name, content, size, price, tax. Quoted values are not supported,
so a comma inside a field splits it.
"""

from __future__ import annotations

import logging

from .models import Product

logger = logging.getLogger(__name__)

MIN_FIELDS = 6


def parse_product_csv(text: str) -> list[Product]:
    products: list[Product] = []
    dropped = 0
    for line in text.split("\n")[1:]:
        line = line.strip()
        if not line:
            continue
        values = line.split(",")
        if len(values) < MIN_FIELDS:
            dropped += 1
            continue
        code, name, content, size, price, tax = (value.strip() for value in values[:MIN_FIELDS])
        products.append(
            Product(
                product_code=code,
                product_name=name,
                content=content,
                size=size,
                price=price,
                tax=tax,
            )
        )
    if dropped:
        logger.debug("Dropped %d CSV line(s) with fewer than %d fields", dropped, MIN_FIELDS)
    return products
