"""
Idea Blueprint — authoring endpoints for the idea track.

Endpoints:
    GET    /api/v1/ideas/mine
    POST   /api/v1/ideas                          body: idea fields + "submit": bool
    GET    /api/v1/ideas/<id>
    PATCH  /api/v1/ideas/<id>
    DELETE /api/v1/ideas/<id>                     withdraw (soft delete)
    POST   /api/v1/ideas/<id>/submit              draft → stage1_review
    POST   /api/v1/ideas/<id>/resubmit            stageN_revise → stageN_review
    POST   /api/v1/ideas/<id>/collaboration       body: {"enabled", "deadline"}
    POST   /api/v1/ideas/<id>/like                toggle
    PUT    /api/v1/ideas/<id>/attachment          body: {"path", "name", "mime"}
    DELETE /api/v1/ideas/<id>/attachment
"""

from flask import Blueprint, jsonify

from ideahub.blueprints import action_response
from ideahub.middleware.identity import current_user_id
from ideahub.services import idea_service
from ideahub.utils.errors import register_error_handlers
from ideahub.utils.helpers import body_flag, json_body

idea_bp = Blueprint("ideas", __name__, url_prefix="/api/v1/ideas")
register_error_handlers(idea_bp)


@idea_bp.route("/mine", methods=["GET"])
def list_mine():
    return jsonify(idea_service.list_my_ideas(current_user_id()))


@idea_bp.route("", methods=["POST"])
def create_idea():
    """Create an idea; ``"submit": false`` keeps it as a draft."""
    data = dict(json_body())
    submit_now = body_flag(data, "submit", default=True)
    data.pop("submit", None)
    result = idea_service.create_idea(current_user_id(), data, submit_now=submit_now)
    return action_response(result, 201)


@idea_bp.route("/<int:idea_id>", methods=["GET"])
def get_idea(idea_id):
    current_user_id()
    return jsonify(idea_service.get_idea(idea_id))


@idea_bp.route("/<int:idea_id>", methods=["PATCH"])
def update_idea(idea_id):
    return action_response(idea_service.update_idea(current_user_id(), idea_id, json_body()))


@idea_bp.route("/<int:idea_id>", methods=["DELETE"])
def withdraw_idea(idea_id):
    return action_response(idea_service.withdraw_idea(current_user_id(), idea_id))


@idea_bp.route("/<int:idea_id>/submit", methods=["POST"])
def submit_idea(idea_id):
    return action_response(idea_service.submit_idea(current_user_id(), idea_id))


@idea_bp.route("/<int:idea_id>/resubmit", methods=["POST"])
def resubmit_idea(idea_id):
    return action_response(idea_service.resubmit_idea(current_user_id(), idea_id))


@idea_bp.route("/<int:idea_id>/collaboration", methods=["POST"])
def toggle_collaboration(idea_id):
    data = json_body()
    result = idea_service.toggle_collaboration(
        current_user_id(), idea_id, data.get("enabled"), data.get("deadline"),
    )
    return action_response(result)


@idea_bp.route("/<int:idea_id>/like", methods=["POST"])
def toggle_like(idea_id):
    return action_response(idea_service.toggle_like(current_user_id(), idea_id))


@idea_bp.route("/<int:idea_id>/attachment", methods=["PUT"])
def set_attachment(idea_id):
    data = json_body()
    result = idea_service.set_attachment(
        current_user_id(), idea_id, data.get("path"), data.get("name"), data.get("mime"),
    )
    return action_response(result)


@idea_bp.route("/<int:idea_id>/attachment", methods=["DELETE"])
def clear_attachment(idea_id):
    return action_response(idea_service.clear_attachment(current_user_id(), idea_id))
