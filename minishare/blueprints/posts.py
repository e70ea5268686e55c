from flask import Blueprint, jsonify, request

from ..auth import current_identity
from ..errors import ValidationError
from ..services import posts as post_service
from ..services.storage import ImageUpload

posts_bp = Blueprint("posts", __name__, url_prefix="/posts")


def _uploads():
    return [ImageUpload.from_file_storage(fs) for fs in request.files.getlist("images") if fs and fs.filename]


def _fields():
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else request.form


def _remove_image_ids():
    raw = [v for v in request.form.getlist("remove_image_ids") if v.strip()]
    try:
        return [int(v) for v in raw]
    except ValueError:
        raise ValidationError("Invalid image ids", details={"fields": {"remove_image_ids": raw}})


@posts_bp.get("")
def list_posts():
    page = post_service.list_posts(
        q=request.args.get("q"),
        page=request.args.get("page", 1, type=int),
        page_size=request.args.get("page_size", post_service.DEFAULT_PAGE_SIZE, type=int),
    )
    return jsonify(
        {
            "posts": [p.to_dict() for p in page.items],
            "total": page.total,
            "page": page.page,
            "page_size": page.page_size,
        }
    )


@posts_bp.post("")
def create_post():
    post = post_service.create_post(current_identity(), request.form, _uploads())
    return jsonify({"post": post.to_dict()}), 201


@posts_bp.get("/<int:post_id>")
def post_detail(post_id: int):
    post = post_service.get_post(post_id)
    return jsonify({"post": post.to_dict(with_comments=True), **post_service.viewer_state(current_identity(), post_id)})


@posts_bp.post("/<int:post_id>/edit")
def edit_post(post_id: int):
    post = post_service.update_post(
        current_identity(), post_id, request.form, _uploads(), remove_image_ids=_remove_image_ids()
    )
    return jsonify({"post": post.to_dict()})


@posts_bp.post("/<int:post_id>/delete")
def delete_post(post_id: int):
    post_service.delete_post(current_identity(), post_id)
    return jsonify({"status": "deleted"})


@posts_bp.post("/<int:post_id>/comments")
def add_comment(post_id: int):
    comment = post_service.add_comment(current_identity(), post_id, _fields())
    return jsonify({"comment": comment.to_dict()}), 201


@posts_bp.post("/comments/<int:comment_id>/delete")
def delete_comment(comment_id: int):
    post_id = post_service.delete_comment(current_identity(), comment_id)
    return jsonify({"status": "deleted", "post_id": post_id})


@posts_bp.post("/<int:post_id>/like")
def toggle_like(post_id: int):
    liked, like_count = post_service.toggle_like(current_identity(), post_id)
    return jsonify({"liked": liked, "like_count": like_count})


@posts_bp.post("/<int:post_id>/favorite")
def toggle_favorite(post_id: int):
    return jsonify({"favorited": post_service.toggle_favorite(current_identity(), post_id)})
