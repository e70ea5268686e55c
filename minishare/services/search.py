from __future__ import annotations

from ..errors import ValidationError
from . import catalog, posts

KINDS = ("all", "products", "posts")


def search(q: str, kind: str = "all", page: int = 1, page_size: int = posts.DEFAULT_PAGE_SIZE) -> dict:
    """Substring search over product names/descriptions and post titles/contents.

    ``kind="all"`` returns the first page of both; otherwise one kind, paged.
    """
    q = (q or "").strip()
    if not q:
        raise ValidationError("Search text is required", details={"fields": {"q": "required"}})
    if kind not in KINDS:
        raise ValidationError("Unknown search type", details={"fields": {"type": kind}})
    page = 1 if kind == "all" else max(int(page or 1), 1)
    page_size = min(max(int(page_size or posts.DEFAULT_PAGE_SIZE), 1), 100)
    start = (page - 1) * page_size

    result: dict = {"q": q, "type": kind, "page": page, "page_size": page_size}
    if kind in ("all", "products"):
        products = catalog.list_products(q=q)
        result["products"] = [catalog.product_summary(p) for p in products[start : start + page_size]]
        result["product_total"] = len(products)
    if kind in ("all", "posts"):
        found = posts.list_posts(q=q, page=page, page_size=page_size)
        result["posts"] = [p.to_dict() for p in found.items]
        result["post_total"] = found.total
    return result
