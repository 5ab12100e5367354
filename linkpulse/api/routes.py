from __future__ import annotations

from flask import current_app, g, jsonify, request

from linkpulse.api import api_bp
from linkpulse.extensions import db
from linkpulse.models import Bookmark
from linkpulse.services.changes import (
    BOOKMARKS_TABLE,
    CHANGE_DELETE,
    CHANGE_INSERT,
    CHANGE_UPDATE,
    latest_cursor,
    list_changes,
    log_change_event,
    parse_actions,
    serialize_bookmark_for_change,
)
from linkpulse.services.security import api_auth_required

ORDERABLE_FIELDS = {
    "created_at": Bookmark.created_at,
    "title": Bookmark.title,
    "id": Bookmark.id,
}
CHANGE_TABLES = {BOOKMARKS_TABLE}


def _clean(value) -> str:
    return str(value or "").strip()


def _scoped_owner_or_error(user):
    """Reads must name their owner filter explicitly; it has to be the caller."""
    owner_id = request.args.get("user_id", type=int)
    if owner_id is None:
        return None, (jsonify({"error": "user_id filter is required"}), 400)
    if owner_id != user.id:
        return None, (jsonify({"error": "filter does not match caller"}), 403)
    return owner_id, None


def _parse_order(raw: str | None):
    field_name, _, direction = (raw or "created_at.desc").partition(".")
    column = ORDERABLE_FIELDS.get(field_name.strip())
    direction = (direction or "asc").strip().lower()
    if column is None or direction not in {"asc", "desc"}:
        return None
    if direction == "desc":
        return [column.desc(), Bookmark.id.desc()]
    return [column.asc(), Bookmark.id.asc()]


def _get_user_bookmark_or_404(user_id: int, bookmark_id: int):
    bookmark = Bookmark.query.filter_by(id=bookmark_id, user_id=user_id).first()
    if not bookmark:
        return None, (jsonify({"error": "bookmark not found"}), 404)
    return bookmark, None


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok", "service": "LinkPulse"})


@api_bp.route("/bookmarks", methods=["GET"])
@api_auth_required
def bookmarks_list_api():
    user = g.api_user
    owner_id, error = _scoped_owner_or_error(user)
    if error:
        return error
    ordering = _parse_order(request.args.get("order"))
    if ordering is None:
        return jsonify({"error": "unsupported order"}), 400

    items = Bookmark.query.filter_by(user_id=owner_id).order_by(*ordering).all()
    return jsonify({"items": [item.as_dict() for item in items]})


@api_bp.route("/bookmarks", methods=["POST"])
@api_auth_required
def bookmarks_create_api():
    user = g.api_user
    payload = request.get_json(silent=True) or {}
    title = _clean(payload.get("title"))
    url = _clean(payload.get("url"))
    if not title or not url:
        return jsonify({"error": "title and url are required"}), 400
    owner_id = payload.get("user_id", user.id)
    if owner_id != user.id:
        return jsonify({"error": "owner does not match caller"}), 403

    bookmark = Bookmark(user_id=user.id, title=title, url=url)
    db.session.add(bookmark)
    db.session.flush()
    log_change_event(
        user.id,
        BOOKMARKS_TABLE,
        bookmark.id,
        CHANGE_INSERT,
        serialize_bookmark_for_change(bookmark),
    )
    db.session.commit()
    return jsonify(bookmark.as_dict()), 201


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["GET"])
@api_auth_required
def bookmarks_get_api(bookmark_id: int):
    user = g.api_user
    bookmark, error = _get_user_bookmark_or_404(user.id, bookmark_id)
    if error:
        return error
    return jsonify(bookmark.as_dict())


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["PATCH"])
@api_auth_required
def bookmarks_update_api(bookmark_id: int):
    user = g.api_user
    bookmark, error = _get_user_bookmark_or_404(user.id, bookmark_id)
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    for field in ["title", "url"]:
        if field not in payload:
            continue
        value = _clean(payload.get(field))
        if not value:
            return jsonify({"error": f"{field} must not be empty"}), 400
        setattr(bookmark, field, value)
    log_change_event(
        user.id,
        BOOKMARKS_TABLE,
        bookmark.id,
        CHANGE_UPDATE,
        serialize_bookmark_for_change(bookmark),
    )
    db.session.commit()
    return jsonify(bookmark.as_dict())


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["DELETE"])
@api_auth_required
def bookmarks_delete_api(bookmark_id: int):
    user = g.api_user
    bookmark, error = _get_user_bookmark_or_404(user.id, bookmark_id)
    if error:
        return error

    log_change_event(
        user.id,
        BOOKMARKS_TABLE,
        bookmark.id,
        CHANGE_DELETE,
        serialize_bookmark_for_change(bookmark),
    )
    db.session.delete(bookmark)
    db.session.commit()
    return jsonify({"status": "deleted", "id": bookmark_id})


@api_bp.route("/changes", methods=["GET"])
@api_auth_required
def changes_feed():
    user = g.api_user
    owner_id, error = _scoped_owner_or_error(user)
    if error:
        return error
    table_name = (request.args.get("table") or BOOKMARKS_TABLE).strip().lower()
    if table_name not in CHANGE_TABLES:
        return jsonify({"error": f"unknown table: {table_name}"}), 404

    since = request.args.get("since", type=int)
    if since is None:
        return jsonify(
            {
                "events": [],
                "cursor": latest_cursor(owner_id, table_name),
                "has_more": False,
            }
        )

    page_size = current_app.config["CHANGE_FEED_PAGE_SIZE"]
    limit = request.args.get("limit", default=page_size, type=int)
    limit = max(1, min(limit, page_size))
    events = list_changes(
        owner_id,
        table_name,
        since,
        parse_actions(request.args.get("events")),
        limit,
    )
    cursor = since
    if events:
        cursor = events[-1].id
    return jsonify(
        {
            "events": [event.as_dict() for event in events],
            "cursor": cursor,
            "has_more": len(events) == limit,
        }
    )
