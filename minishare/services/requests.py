"""
Product request lifecycle.

A request is submitted by a seller (a new listing, or an edit of a product
they own), then resolved once by an administrator: approval publishes it to
the catalog, rejection records a comment. Each operation runs in a single
transaction. Resolution claims the request with a conditional UPDATE on its
status, so a request that was resolved elsewhere in the meantime is reported
as already processed instead of being applied twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.orm import joinedload, selectinload

from ..auth import Identity
from ..errors import NotFoundError, UnauthenticatedError, UnauthorizedError, ValidationError
from ..extensions import db, transaction
from ..models import Product, ProductRequest, RequestStatus, User, utcnow
from . import images as image_resolver
from .storage import ImageUpload, get_storage
from .validation import validate_listing_fields

logger = logging.getLogger(__name__)

ALREADY_PROCESSED = "Request was already processed."


@dataclass
class ReviewOutcome:
    processed: bool
    message: str
    request: Optional[ProductRequest] = None
    product: Optional[Product] = None


def _with_joins(stmt):
    return stmt.options(
        joinedload(ProductRequest.requested_by),
        joinedload(ProductRequest.reviewed_by),
        selectinload(ProductRequest.original_product),
        selectinload(ProductRequest.images),
    )


def _load(session, request_id: int) -> ProductRequest:
    req = session.scalars(_with_joins(select(ProductRequest).where(ProductRequest.id == request_id))).first()
    if req is None:
        raise NotFoundError(f"Product request {request_id} not found", details={"request_id": request_id})
    return req


def _claim(session, req: ProductRequest, status: RequestStatus, reviewer_id: int, **values: Any) -> bool:
    """Move ``req`` out of pending iff nobody else has; True when this caller won."""
    result = session.execute(
        update(ProductRequest)
        .where(ProductRequest.id == req.id, ProductRequest.status == RequestStatus.PENDING.value)
        .values(status=status.value, reviewed_at=utcnow(), reviewed_by_id=reviewer_id, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False
    session.refresh(req, ["status", "reviewed_at", "reviewed_by_id", "review_comment"])
    return True


def submit(
    identity: Identity,
    fields: Mapping[str, Any],
    uploads: Iterable[ImageUpload],
    original_product_id: Optional[int] = None,
    keep_image_ids: Optional[Iterable[int]] = None,
) -> ProductRequest:
    """Create a pending request with its images staged under it.

    ``keep_image_ids`` only applies to edits: the product's images with those
    ids are copied onto the request ahead of the new uploads. ``None`` keeps
    all of them.
    """
    identity.require_authenticated()
    data = validate_listing_fields(fields)
    uploads = list(uploads or [])
    storage = get_storage()
    max_images = current_app.config["MAX_LISTING_IMAGES"]

    for upload in uploads:
        storage.validate(upload)

    with transaction() as session:
        if session.get(User, identity.user_id) is None:
            raise UnauthenticatedError("Unknown user")

        kept = []
        if original_product_id is None:
            if not uploads:
                raise ValidationError("At least one image is required", details={"fields": {"images": "required"}})
            if len(uploads) > max_images:
                raise ValidationError(
                    f"At most {max_images} images per listing",
                    details={"fields": {"images": f"{len(uploads)} given"}},
                )
        else:
            product = session.get(Product, original_product_id)
            if product is None:
                raise NotFoundError(
                    f"Product {original_product_id} not found", details={"product_id": original_product_id}
                )
            if product.seller_id != identity.user_id and not identity.is_admin:
                raise UnauthorizedError("You can only edit your own products")
            kept = _select_kept(product, keep_image_ids)
            total = len(kept) + len(uploads)
            if not 1 <= total <= max_images:
                raise ValidationError(
                    f"A listing needs between 1 and {max_images} images",
                    details={"fields": {"images": f"{total} after edit"}},
                )

        req = ProductRequest(
            **data,
            status=RequestStatus.PENDING.value,
            requested_by_id=identity.user_id,
            original_product_id=original_product_id,
        )
        session.add(req)
        session.flush()

        written: List[str] = []
        try:
            image_resolver.copy_to_request(kept, req)
            for upload in uploads:
                written.append(storage.upload(upload, req.id))
            image_resolver.stage(req, written, start=len(kept))
            if kept:
                image_resolver.normalize_order(req.images)
            session.flush()
        except Exception:
            for url in written:
                storage.delete(url)
            raise

    logger.info(
        "User %s submitted %s request %s (%d image(s))",
        identity.user_id,
        "edit" if original_product_id is not None else "listing",
        req.id,
        len(kept) + len(uploads),
    )
    return req


def _select_kept(product: Product, keep_image_ids: Optional[Iterable[int]]):
    if keep_image_ids is None:
        return list(product.images)
    wanted = {int(i) for i in keep_image_ids}
    known = {img.id for img in product.images}
    unknown = wanted - known
    if unknown:
        raise ValidationError(
            "Images do not belong to this product",
            details={"fields": {"keep_image_ids": sorted(unknown)}},
        )
    return [img for img in product.images if img.id in wanted]


def approve(identity: Identity, request_id: int) -> ReviewOutcome:
    identity.require_admin()
    with transaction() as session:
        req = _load(session, request_id)
        if not req.is_pending:
            logger.info("Approve of request %s skipped: already %s", request_id, req.status)
            return ReviewOutcome(False, ALREADY_PROCESSED, request=req)

        product = None
        if req.is_edit:
            product = session.get(Product, req.original_product_id)
            if product is None:
                raise NotFoundError(
                    f"Product {req.original_product_id} targeted by request {request_id} no longer exists",
                    details={"request_id": request_id, "product_id": req.original_product_id},
                )

        if not _claim(session, req, RequestStatus.APPROVED, identity.user_id):
            session.rollback()
            logger.info("Approve of request %s lost the race; already processed", request_id)
            return ReviewOutcome(False, ALREADY_PROCESSED)

        staged = list(req.images)
        if product is None:
            product = Product(**req.listing_fields(), seller_id=req.requested_by_id, created_at=utcnow())
            session.add(product)
            session.flush()
            message = f'Approved listing request for "{product.name}".'
        else:
            for key, value in req.listing_fields().items():
                setattr(product, key, value)
            removed = image_resolver.detach_all(product)
            session.flush()
            logger.debug("Dropped %d image(s) of product %s", removed, product.id)
            message = f'Approved edit request for "{product.name}".'

        image_resolver.reparent(staged, req.id, product)

    logger.info(
        "Admin %s approved request %s -> product %s (%d image(s))",
        identity.user_id,
        request_id,
        product.id,
        len(staged),
    )
    return ReviewOutcome(True, message, request=req, product=product)


def reject(identity: Identity, request_id: int, comment: Optional[str] = None) -> ReviewOutcome:
    identity.require_admin()
    with transaction() as session:
        req = _load(session, request_id)
        if not req.is_pending:
            logger.info("Reject of request %s skipped: already %s", request_id, req.status)
            return ReviewOutcome(False, ALREADY_PROCESSED, request=req)
        if not _claim(session, req, RequestStatus.REJECTED, identity.user_id, review_comment=comment):
            session.rollback()
            logger.info("Reject of request %s lost the race; already processed", request_id)
            return ReviewOutcome(False, ALREADY_PROCESSED)
        message = f'Rejected request for "{req.name}".'

    logger.info("Admin %s rejected request %s", identity.user_id, request_id)
    return ReviewOutcome(True, message, request=req)


def delete(identity: Identity, request_id: int) -> None:
    identity.require_admin()
    with transaction() as session:
        req = session.get(ProductRequest, request_id)
        if req is None:
            raise NotFoundError(f"Product request {request_id} not found", details={"request_id": request_id})
        staged = list(req.images)
        for img in staged:
            session.delete(img)
        session.delete(req)
    logger.info("Admin %s deleted request %s (%d staged image(s))", identity.user_id, request_id, len(staged))


def list_requests(identity: Identity, status: Optional[str] = None) -> List[ProductRequest]:
    identity.require_admin()
    stmt = select(ProductRequest)
    if status:
        if status not in {s.value for s in RequestStatus}:
            raise ValidationError("Unknown status", details={"fields": {"status": status}})
        stmt = stmt.where(ProductRequest.status == status)
    stmt = _with_joins(stmt).order_by(ProductRequest.created_at.desc(), ProductRequest.id.desc())
    return list(db.session.scalars(stmt).unique())


def get_request(identity: Identity, request_id: int) -> ProductRequest:
    identity.require_admin()
    return _load(db.session, request_id)


def list_own_requests(identity: Identity) -> List[ProductRequest]:
    identity.require_authenticated()
    stmt = (
        _with_joins(select(ProductRequest))
        .where(ProductRequest.requested_by_id == identity.user_id)
        .order_by(ProductRequest.created_at.desc(), ProductRequest.id.desc())
    )
    return list(db.session.scalars(stmt).unique())
