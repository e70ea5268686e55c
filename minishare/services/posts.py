"""
Social feed: posts with images, comments, likes and favorites.

Posts are published directly by their author, with no review step. Likes are
one per user and post; ``Post.like_count`` is kept in step with them by a
relative UPDATE in the same transaction as the like row.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, NamedTuple, Optional, Tuple

from flask import current_app
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload, selectinload

from ..auth import Identity
from ..errors import NotFoundError, UnauthorizedError, ValidationError
from ..extensions import db, transaction
from ..models import Comment, Post, PostFavorite, PostImage, PostLike, User, utcnow
from .storage import ImageUpload, get_storage
from .validation import AUTHOR_NAME_MAX_LENGTH, validate_comment, validate_post_fields

logger = logging.getLogger(__name__)

ANONYMOUS_NAME = "Anonymous"
DEFAULT_PAGE_SIZE = 10


class Page(NamedTuple):
    items: List[Post]
    total: int
    page: int
    page_size: int


def _feed_query():
    return select(Post).options(
        joinedload(Post.author),
        selectinload(Post.images),
        selectinload(Post.comments),
    )


def _matching(stmt, q: Optional[str]):
    q = (q or "").strip()
    if q:
        like = f"%{q}%"
        stmt = stmt.where(or_(Post.title.ilike(like), Post.content.ilike(like)))
    return stmt


def list_posts(q: Optional[str] = None, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> Page:
    """Newest posts first, optionally filtered by a title/content substring."""
    page = max(int(page or 1), 1)
    page_size = min(max(int(page_size or DEFAULT_PAGE_SIZE), 1), 100)
    total = db.session.scalar(_matching(select(func.count(Post.id)), q))
    stmt = (
        _matching(_feed_query(), q)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return Page(list(db.session.scalars(stmt).unique()), total, page, page_size)


def list_user_posts(user_id: int) -> List[Post]:
    stmt = _feed_query().where(Post.author_id == user_id).order_by(Post.created_at.desc(), Post.id.desc())
    return list(db.session.scalars(stmt).unique())


def get_post(post_id: int) -> Post:
    post = db.session.scalars(_feed_query().where(Post.id == post_id)).first()
    if post is None:
        raise NotFoundError(f"Post {post_id} not found", details={"post_id": post_id})
    return post


def _check_uploads(uploads: List[ImageUpload], existing: int = 0) -> None:
    max_images = current_app.config["MAX_POST_IMAGES"]
    if existing + len(uploads) > max_images:
        raise ValidationError(
            f"At most {max_images} images per post",
            details={"fields": {"images": f"{existing + len(uploads)} given"}},
        )
    storage = get_storage()
    for upload in uploads:
        storage.validate(upload)


def _attach(session, post: Post, uploads: List[ImageUpload]) -> List[str]:
    storage = get_storage()
    written: List[str] = []
    try:
        start = len(post.images)
        for offset, upload in enumerate(uploads):
            url = storage.upload(upload, post.id, kind="post")
            written.append(url)
            post.images.append(PostImage(url=url, is_main=start + offset == 0, sort_order=start + offset))
        session.flush()
    except Exception:
        for url in written:
            storage.delete(url)
        raise
    return written


def create_post(identity: Identity, fields: Mapping[str, Any], uploads: Iterable[ImageUpload] = ()) -> Post:
    identity.require_authenticated()
    data = validate_post_fields(fields)
    uploads = list(uploads or [])
    _check_uploads(uploads)

    written: List[str] = []
    try:
        with transaction() as session:
            post = Post(**data, author_id=identity.user_id, created_at=utcnow())
            session.add(post)
            session.flush()
            written = _attach(session, post, uploads)
    except Exception:
        storage = get_storage()
        for url in written:
            storage.delete(url)
        raise

    logger.info("User %s published post %s (%d image(s))", identity.user_id, post.id, len(uploads))
    return post


def _own_post(identity: Identity, post_id: int) -> Post:
    identity.require_authenticated()
    post = db.session.get(Post, post_id)
    if post is None:
        raise NotFoundError(f"Post {post_id} not found", details={"post_id": post_id})
    if post.author_id != identity.user_id and not identity.is_admin:
        raise UnauthorizedError("You can only change your own posts")
    return post


def update_post(
    identity: Identity,
    post_id: int,
    fields: Mapping[str, Any],
    uploads: Iterable[ImageUpload] = (),
    remove_image_ids: Optional[Iterable[int]] = None,
) -> Post:
    """Edit a post in place: new text, selected images dropped, new uploads appended."""
    post = _own_post(identity, post_id)
    data = validate_post_fields(fields)
    uploads = list(uploads or [])
    drop = {int(i) for i in (remove_image_ids or [])}
    unknown = drop - {img.id for img in post.images}
    if unknown:
        raise ValidationError(
            "Images do not belong to this post",
            details={"fields": {"remove_image_ids": sorted(unknown)}},
        )
    _check_uploads(uploads, existing=len(post.images) - len(drop))

    dropped_urls = []
    with transaction() as session:
        post.title = data["title"]
        post.content = data["content"]
        for img in [i for i in post.images if i.id in drop]:
            dropped_urls.append(img.url)
            post.images.remove(img)
        session.flush()
        for position, img in enumerate(post.images):
            img.sort_order = position
            img.is_main = position == 0
        _attach(session, post, uploads)

    storage = get_storage()
    for url in dropped_urls:
        storage.delete(url)
    logger.info("User %s edited post %s", identity.user_id, post_id)
    return post


def delete_post(identity: Identity, post_id: int) -> None:
    post = _own_post(identity, post_id)
    urls = [img.url for img in post.images]
    with transaction() as session:
        session.delete(post)
    storage = get_storage()
    for url in urls:
        storage.delete(url)
    logger.info("User %s deleted post %s", identity.user_id, post_id)


def add_comment(identity: Identity, post_id: int, fields: Mapping[str, Any]) -> Comment:
    """Comment on a post.

    Logged-in users comment under their username; anonymous visitors may give
    an ``author_name`` and fall back to "Anonymous".
    """
    content = validate_comment(fields)
    if db.session.get(Post, post_id) is None:
        raise NotFoundError(f"Post {post_id} not found", details={"post_id": post_id})

    if identity.is_authenticated:
        user = db.session.get(User, identity.user_id)
        author_name = user.username if user else ANONYMOUS_NAME
    else:
        raw = fields.get("author_name")
        author_name = raw.strip() if isinstance(raw, str) and raw.strip() else ANONYMOUS_NAME
    author_name = author_name[:AUTHOR_NAME_MAX_LENGTH]

    with transaction() as session:
        comment = Comment(
            post_id=post_id,
            author_name=author_name,
            user_id=identity.user_id,
            content=content,
            created_at=utcnow(),
        )
        session.add(comment)
    logger.info("Comment %s added to post %s by %s", comment.id, post_id, author_name)
    return comment


def delete_comment(identity: Identity, comment_id: int) -> int:
    """Delete a comment; returns the post it belonged to."""
    identity.require_authenticated()
    comment = db.session.get(Comment, comment_id)
    if comment is None:
        raise NotFoundError(f"Comment {comment_id} not found", details={"comment_id": comment_id})
    if comment.user_id != identity.user_id and not identity.is_admin:
        raise UnauthorizedError("You can only delete your own comments")
    post_id = comment.post_id
    with transaction() as session:
        session.delete(comment)
    return post_id


def toggle_like(identity: Identity, post_id: int) -> Tuple[bool, int]:
    """Like or unlike a post; returns ``(liked, like_count)``."""
    identity.require_authenticated()
    with transaction() as session:
        post = session.get(Post, post_id)
        if post is None:
            raise NotFoundError(f"Post {post_id} not found", details={"post_id": post_id})
        existing = session.scalars(
            select(PostLike).where(PostLike.post_id == post_id, PostLike.user_id == identity.user_id)
        ).first()
        if existing is not None:
            session.delete(existing)
            session.execute(
                update(Post)
                .where(Post.id == post_id, Post.like_count > 0)
                .values(like_count=Post.like_count - 1)
                .execution_options(synchronize_session=False)
            )
            liked = False
        else:
            session.add(PostLike(post_id=post_id, user_id=identity.user_id, created_at=utcnow()))
            try:
                session.flush()
            except IntegrityError:
                # A parallel request from the same user liked it first
                session.rollback()
                post = session.get(Post, post_id)
                return True, post.like_count
            session.execute(
                update(Post)
                .where(Post.id == post_id)
                .values(like_count=Post.like_count + 1)
                .execution_options(synchronize_session=False)
            )
            liked = True
        session.flush()
        session.refresh(post, ["like_count"])
    return liked, post.like_count


def toggle_favorite(identity: Identity, post_id: int) -> bool:
    """Add or remove a post from the caller's favorites; True when now favorited."""
    identity.require_authenticated()
    with transaction() as session:
        if session.get(Post, post_id) is None:
            raise NotFoundError(f"Post {post_id} not found", details={"post_id": post_id})
        removed = session.execute(
            delete(PostFavorite).where(PostFavorite.post_id == post_id, PostFavorite.user_id == identity.user_id)
        ).rowcount
        if not removed:
            session.add(PostFavorite(post_id=post_id, user_id=identity.user_id, created_at=utcnow()))
    return not removed


def viewer_state(identity: Identity, post_id: int) -> dict:
    """Whether the caller has liked and favorited a post."""
    if not identity.is_authenticated:
        return {"liked": False, "favorited": False}
    liked = db.session.scalar(
        select(func.count(PostLike.id)).where(PostLike.post_id == post_id, PostLike.user_id == identity.user_id)
    )
    favorited = db.session.scalar(
        select(func.count(PostFavorite.id)).where(
            PostFavorite.post_id == post_id, PostFavorite.user_id == identity.user_id
        )
    )
    return {"liked": bool(liked), "favorited": bool(favorited)}
