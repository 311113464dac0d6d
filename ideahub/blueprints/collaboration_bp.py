"""
Collaboration Blueprint — requests, proposals and idea versions.

Endpoints:
    Requests
    GET    /api/v1/collaboration/open-ideas
    GET    /api/v1/collaboration/requests/inbox
    GET    /api/v1/collaboration/requests/outbox
    POST   /api/v1/collaboration/ideas/<idea_id>/requests        body: {"message"}
    POST   /api/v1/collaboration/requests/<id>/respond           body: {"action": "approve|reject"}
    DELETE /api/v1/collaboration/requests/<id>

    Proposals
    POST   /api/v1/collaboration/ideas/<idea_id>/proposals       body: {"proposed", "collaboration_notes",
                                                                       "change_summary"}
    GET    /api/v1/collaboration/ideas/<idea_id>/proposals       pending, oldest first
    GET    /api/v1/collaboration/ideas/<idea_id>/manage
    GET    /api/v1/collaboration/proposals/mine
    GET    /api/v1/collaboration/proposals/received
    GET    /api/v1/collaboration/proposals/<id>
    POST   /api/v1/collaboration/proposals/<id>/respond          body: {"action": "accept|reject",
                                                                       "review_notes", "edited"}

    Versions
    GET    /api/v1/collaboration/ideas/<idea_id>/versions
    GET    /api/v1/collaboration/ideas/<idea_id>/versions/<n>
    POST   /api/v1/collaboration/ideas/<idea_id>/versions/<n>/rollback
"""

from flask import Blueprint, jsonify

from ideahub.blueprints import action_response
from ideahub.middleware.identity import current_user_id
from ideahub.services import collaboration_request_service, proposal_service, version_service
from ideahub.utils.errors import register_error_handlers
from ideahub.utils.helpers import json_body

collaboration_bp = Blueprint("collaboration", __name__, url_prefix="/api/v1/collaboration")
register_error_handlers(collaboration_bp)


# ── Requests ───────────────────────────────────────────────────────────────────


@collaboration_bp.route("/open-ideas", methods=["GET"])
def open_ideas():
    return jsonify(collaboration_request_service.list_open_ideas(current_user_id()))


@collaboration_bp.route("/requests/inbox", methods=["GET"])
def request_inbox():
    return jsonify(collaboration_request_service.inbox(current_user_id()))


@collaboration_bp.route("/requests/outbox", methods=["GET"])
def request_outbox():
    return jsonify(collaboration_request_service.outbox(current_user_id()))


@collaboration_bp.route("/ideas/<int:idea_id>/requests", methods=["POST"])
def send_request(idea_id):
    data = json_body()
    result = collaboration_request_service.send_request(current_user_id(), idea_id, data.get("message"))
    return action_response(result, 201)


@collaboration_bp.route("/requests/<int:request_id>/respond", methods=["POST"])
def respond_to_request(request_id):
    data = json_body()
    result = collaboration_request_service.respond(current_user_id(), request_id, data.get("action"))
    return action_response(result)


@collaboration_bp.route("/requests/<int:request_id>", methods=["DELETE"])
def cancel_request(request_id):
    return action_response(collaboration_request_service.cancel(current_user_id(), request_id))


# ── Proposals ──────────────────────────────────────────────────────────────────


@collaboration_bp.route("/ideas/<int:idea_id>/proposals", methods=["POST"])
def create_proposal(idea_id):
    data = json_body()
    result = proposal_service.create_proposal(
        current_user_id(),
        idea_id,
        data.get("proposed"),
        data.get("collaboration_notes"),
        data.get("change_summary"),
    )
    return action_response(result, 201)


@collaboration_bp.route("/ideas/<int:idea_id>/proposals", methods=["GET"])
def pending_proposals(idea_id):
    return jsonify(proposal_service.list_pending_proposals(current_user_id(), idea_id))


@collaboration_bp.route("/ideas/<int:idea_id>/manage", methods=["GET"])
def manage(idea_id):
    return jsonify(proposal_service.manage_view(current_user_id(), idea_id))


@collaboration_bp.route("/proposals/mine", methods=["GET"])
def my_proposals():
    return jsonify(proposal_service.my_proposals(current_user_id()))


@collaboration_bp.route("/proposals/received", methods=["GET"])
def received_proposals():
    return jsonify(proposal_service.received_proposals(current_user_id()))


@collaboration_bp.route("/proposals/<int:proposal_id>", methods=["GET"])
def get_proposal(proposal_id):
    return jsonify(proposal_service.get_proposal(current_user_id(), proposal_id))


@collaboration_bp.route("/proposals/<int:proposal_id>/respond", methods=["POST"])
def respond_to_proposal(proposal_id):
    data = json_body()
    result = proposal_service.respond_to_proposal(
        current_user_id(),
        proposal_id,
        data.get("action"),
        data.get("review_notes"),
        data.get("edited"),
    )
    return action_response(result)


# ── Versions ───────────────────────────────────────────────────────────────────


@collaboration_bp.route("/ideas/<int:idea_id>/versions", methods=["GET"])
def list_versions(idea_id):
    return jsonify(version_service.list_versions(current_user_id(), idea_id))


@collaboration_bp.route("/ideas/<int:idea_id>/versions/<int:version_number>", methods=["GET"])
def get_version(idea_id, version_number):
    return jsonify(version_service.get_version(current_user_id(), idea_id, version_number))


@collaboration_bp.route("/ideas/<int:idea_id>/versions/<int:version_number>/rollback", methods=["POST"])
def rollback(idea_id, version_number):
    return action_response(version_service.rollback(current_user_id(), idea_id, version_number))
