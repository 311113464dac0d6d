"""
Challenge Blueprint — challenges and challenge submissions.

Endpoints:
    GET    /api/v1/challenges                     ?open=true for open ones only
    POST   /api/v1/challenges                     deputy director / admin
    GET    /api/v1/challenges/<id>
    POST   /api/v1/challenges/<id>/submissions    body: submission fields + "submit": bool
    PATCH  /api/v1/challenges/submissions/<id>    body: submission fields + "submit": bool
    GET    /api/v1/challenges/submissions/mine
"""

from flask import Blueprint, jsonify

from ideahub.blueprints import action_response
from ideahub.middleware.identity import current_user_id
from ideahub.services import challenge_service
from ideahub.utils.errors import register_error_handlers
from ideahub.utils.helpers import arg_flag, body_flag, json_body

challenge_bp = Blueprint("challenges", __name__, url_prefix="/api/v1/challenges")
register_error_handlers(challenge_bp)


def _split_submit(data):
    data = dict(data)
    submit_now = body_flag(data, "submit", default=False)
    data.pop("submit", None)
    return data, submit_now


@challenge_bp.route("", methods=["GET"])
def list_challenges():
    current_user_id()
    return jsonify(challenge_service.list_challenges(open_only=arg_flag("open")))


@challenge_bp.route("", methods=["POST"])
def create_challenge():
    return action_response(challenge_service.create_challenge(current_user_id(), json_body()), 201)


@challenge_bp.route("/<int:challenge_id>", methods=["GET"])
def get_challenge(challenge_id):
    current_user_id()
    return jsonify(challenge_service.get_challenge(challenge_id))


@challenge_bp.route("/<int:challenge_id>/submissions", methods=["POST"])
def create_submission(challenge_id):
    data, submit_now = _split_submit(json_body())
    result = challenge_service.create_submission(
        current_user_id(), challenge_id, data, submit_now=submit_now,
    )
    return action_response(result, 201)


@challenge_bp.route("/submissions/<int:submission_id>", methods=["PATCH"])
def update_submission(submission_id):
    data, submit_now = _split_submit(json_body())
    result = challenge_service.update_submission(
        current_user_id(), submission_id, data, submit_now=submit_now,
    )
    return action_response(result)


@challenge_bp.route("/submissions/mine", methods=["GET"])
def my_submissions():
    return jsonify(challenge_service.my_submissions(current_user_id()))
