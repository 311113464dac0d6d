"""
IdeaHub Review Platform
Blueprint registry.

Layer contract for every blueprint:
    - parse the request, resolve the acting user, call one service function;
    - NO db.session calls here; all writes are owned by the service layer;
    - NO inline role/ownership checks; the services raise DomainError and
      ``register_error_handlers`` maps it onto a JSON error response.
"""

from flask import jsonify


def action_response(result, status=200):
    """Serialise a service ``ActionResult`` as the JSON response body."""
    return jsonify(result.to_dict()), status


def all_blueprints():
    from ideahub.blueprints.challenge_bp import challenge_bp
    from ideahub.blueprints.collaboration_bp import collaboration_bp
    from ideahub.blueprints.health_bp import health_bp
    from ideahub.blueprints.idea_bp import idea_bp
    from ideahub.blueprints.review_bp import review_bp

    return [health_bp, idea_bp, challenge_bp, review_bp, collaboration_bp]
