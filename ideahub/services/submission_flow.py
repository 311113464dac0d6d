"""
Author-side status moves shared by ideas and challenge submissions.

    draft          → stage1_review
    stage1_revise  → stage1_review   (new review round)
    stage2_revise  → stage2_review   (new review round)

Everything else is owned by the decision service.
"""

from datetime import datetime, timezone

from ideahub.core.exceptions import NotEligibleError
from ideahub.models.workflow import AUTHOR_TRANSITIONS, IdeaStatus, validate_author_transition


def submit_for_review(subject, label: str) -> tuple[str, str]:
    """Move *subject* to the next review status on the author's behalf.

    A resubmission after a revise outcome opens a new review round, so the
    stage can be decided again.  Reviewers who already reviewed the stage
    are not asked again.

    Returns:
        (old_status, new_status)

    Raises:
        NotEligibleError: the subject is not in an author-submittable status.
    """
    old_status = subject.status
    targets = AUTHOR_TRANSITIONS.get(old_status, [])
    if not targets or not validate_author_transition(old_status, targets[0]):
        raise NotEligibleError(f"This {label} cannot be submitted in its current status.")

    new_status = targets[0]
    subject.status = new_status.value
    subject.submitted_at = datetime.now(timezone.utc)
    if old_status != IdeaStatus.DRAFT:
        subject.review_round = (subject.review_round or 1) + 1
    return old_status, new_status.value
