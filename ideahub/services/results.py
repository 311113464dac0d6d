"""Result object returned by every mutating service call."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a successful mutation.

    ``message`` is the short confirmation shown in a toast; ``entity`` is the
    serialised record that was created or changed.
    """

    success: bool
    entity: dict | None
    message: str

    def to_dict(self):
        return {"success": self.success, "data": self.entity, "message": self.message}
