"""
Image attachment resolution.

A ``ProductImage`` row belongs to exactly one owner at a time: either the
request that staged it or the product it was published to. These helpers are
the only code that moves rows between owners, so the single-owner rule is
checked here as well as by the database constraint.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from ..errors import InvariantViolation
from ..extensions import db
from ..models import Product, ProductImage, ProductRequest

logger = logging.getLogger(__name__)


def stage(request: ProductRequest, urls: Sequence[str], start: int = 0) -> List[ProductImage]:
    """Attach one new image row per url to ``request``, in order.

    The first staged image is the main one unless earlier images already
    exist (``start`` > 0).
    """
    staged = []
    for offset, url in enumerate(urls):
        position = start + offset
        img = ProductImage(image_url=url, is_main=position == 0, sort_order=position)
        request.images.append(img)
        staged.append(img)
    return staged


def copy_to_request(images: Iterable[ProductImage], request: ProductRequest, start: int = 0) -> List[ProductImage]:
    """Copy product images onto an edit request; the originals stay where they are."""
    copies = []
    for offset, src in enumerate(images):
        img = ProductImage(image_url=src.image_url, is_main=src.is_main, sort_order=start + offset)
        request.images.append(img)
        copies.append(img)
    return copies


def reparent(images: Iterable[ProductImage], from_request_id: int, to_product: Product) -> List[ProductImage]:
    moved = []
    for img in list(images):
        if img.product_request_id != from_request_id or img.product_id is not None:
            raise InvariantViolation(
                "Image is not staged under the request being published",
                details={"image_id": img.id, "owner": img.owner, "request_id": from_request_id},
            )
        img.product_request = None
        img.product = to_product
        moved.append(img)
    # Keep both sides of the relationship in step before the flush
    db.session.flush()
    logger.debug("Moved %d image(s) from request %s to product %s", len(moved), from_request_id, to_product.id)
    return moved


def detach_all(product: Product) -> int:
    """Delete every image row attached to ``product``. Files are left on disk."""
    images = list(product.images)
    for img in images:
        product.images.remove(img)
        db.session.delete(img)
    return len(images)


def normalize_order(images: Sequence[ProductImage]) -> None:
    for position, img in enumerate(images):
        img.sort_order = position
        img.is_main = position == 0


def main_image_url(product: Product) -> Optional[str]:
    images = list(product.images)
    for img in images:
        if img.is_main:
            return img.image_url
    if not images:
        return None
    return min(images, key=lambda i: (i.sort_order, i.id or 0)).image_url
