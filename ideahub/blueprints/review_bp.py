"""
Review Blueprint — stage reviews and deputy-director decisions, per track.

``<track>`` is "idea" or "challenge"; ``<stage>`` is "stage1" or "stage2".

Endpoints:
    GET    /api/v1/reviews/<track>/<stage>/queue          items awaiting my review
    GET    /api/v1/reviews/<track>/<stage>/reviewed       my recent reviews
    GET    /api/v1/reviews/<track>/<stage>/stats          pending / reviewed counts
    GET    /api/v1/reviews/<track>/mine                   reviews on my own items
    GET    /api/v1/reviews/<track>/<subject_id>           review context
    POST   /api/v1/reviews/<track>/<subject_id>           body: {"stage", "recommendation", "comments"}

    GET    /api/v1/decisions/<track>/<stage>/pending      quorum met, undecided
    GET    /api/v1/decisions/<track>/<stage>/in-revision  sent back to authors
    GET    /api/v1/decisions/<track>/<subject_id>         decision history
    POST   /api/v1/decisions/<track>/<subject_id>         body: {"stage", "decision",
                                                                 "compiled_comments", "dd_comments"}
"""

from flask import Blueprint, jsonify

from ideahub.blueprints import action_response
from ideahub.middleware.identity import current_user_id
from ideahub.services import decision_service, review_service
from ideahub.utils.errors import register_error_handlers
from ideahub.utils.helpers import json_body

review_bp = Blueprint("reviews", __name__, url_prefix="/api/v1")
register_error_handlers(review_bp)


# ── Reviews ────────────────────────────────────────────────────────────────────


@review_bp.route("/reviews/<track>/<stage>/queue", methods=["GET"])
def review_queue(track, stage):
    return jsonify(review_service.list_reviewable(current_user_id(), track, stage))


@review_bp.route("/reviews/<track>/<stage>/reviewed", methods=["GET"])
def reviewed_by_me(track, stage):
    return jsonify(review_service.list_reviewed_by_user(current_user_id(), track, stage))


@review_bp.route("/reviews/<track>/<stage>/stats", methods=["GET"])
def reviewer_stats(track, stage):
    return jsonify(review_service.reviewer_stats(current_user_id(), track, stage))


@review_bp.route("/reviews/<track>/mine", methods=["GET"])
def reviews_on_my_items(track):
    return jsonify(review_service.list_author_reviews(current_user_id(), track))


@review_bp.route("/reviews/<track>/<int:subject_id>", methods=["GET"])
def review_context(track, subject_id):
    return jsonify(review_service.get_review_context(current_user_id(), track, subject_id))


@review_bp.route("/reviews/<track>/<int:subject_id>", methods=["POST"])
def submit_review(track, subject_id):
    """Record the caller's recommendation for one stage."""
    data = json_body()
    result = review_service.submit_review(
        current_user_id(),
        track,
        subject_id,
        data.get("stage"),
        data.get("recommendation"),
        data.get("comments"),
    )
    return action_response(result, 201)


# ── Decisions ──────────────────────────────────────────────────────────────────


@review_bp.route("/decisions/<track>/<stage>/pending", methods=["GET"])
def pending_decisions(track, stage):
    return jsonify(decision_service.list_pending_decisions(current_user_id(), track, stage))


@review_bp.route("/decisions/<track>/<stage>/in-revision", methods=["GET"])
def in_revision(track, stage):
    return jsonify(decision_service.list_in_revision(current_user_id(), track, stage))


@review_bp.route("/decisions/<track>/<int:subject_id>", methods=["GET"])
def decision_history(track, subject_id):
    return jsonify(decision_service.get_decisions(current_user_id(), track, subject_id))


@review_bp.route("/decisions/<track>/<int:subject_id>", methods=["POST"])
def make_decision(track, subject_id):
    """Compile a stage's reviews into the binding decision."""
    data = json_body()
    result = decision_service.make_decision(
        current_user_id(),
        track,
        subject_id,
        data.get("stage"),
        data.get("decision"),
        data.get("compiled_comments"),
        data.get("dd_comments"),
    )
    return action_response(result, 201)
