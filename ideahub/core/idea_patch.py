"""
Typed patch over an idea's editable fields.

``IdeaPatch`` is the one place the set of editable fields is declared; the
ordered ``EDITABLE_FIELDS`` tuple is derived from it.  A ``None`` attribute
means "no change requested for this field", the same convention the
collaboration proposal's ``proposed_*`` columns use.

Usage:
    patch = IdeaPatch.from_mapping(request_json["proposed"])
    changed = patch.changed_against(idea)     # ["abstract"]
    patch.apply_to(idea)                      # non-null values only
"""

from dataclasses import dataclass, fields, replace
from datetime import date, datetime

from ideahub.core.exceptions import ValidationError

_TEXT_LIMITS = {
    "title": 255,
}


@dataclass(frozen=True)
class IdeaPatch:
    title: str | None = None
    abstract: str | None = None
    problem_statement: str | None = None
    proposed_solution: str | None = None
    cost_benefit_analysis: str | None = None
    declaration_of_interests: str | None = None
    original_idea_disclaimer: bool | None = None
    collaboration_enabled: bool | None = None
    team_effort: bool | None = None
    comments_enabled: bool | None = None
    collaboration_deadline: date | None = None

    # ── Construction ─────────────────────────────────────────────────────

    @classmethod
    def from_mapping(cls, data: dict | None) -> "IdeaPatch":
        """Build a patch from untrusted input, validating names and types.

        Raises:
            ValidationError: unknown field name or value of the wrong type.
        """
        data = data or {}
        if not isinstance(data, dict):
            raise ValidationError("Proposed fields must be an object")

        unknown = sorted(set(data) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationError(
                f"Unknown editable field(s): {', '.join(unknown)}",
                details={name: "unknown field" for name in unknown},
            )

        values = {}
        errors = {}
        for name in EDITABLE_FIELDS:
            if name not in data or data[name] is None:
                continue
            try:
                values[name] = _coerce(name, data[name])
            except ValueError as exc:
                errors[name] = str(exc)
        if errors:
            raise ValidationError("Invalid proposed field values", details=errors)
        return cls(**values)

    @classmethod
    def from_proposal(cls, proposal) -> "IdeaPatch":
        """Read the ``proposed_<field>`` shadow columns of a proposal row."""
        return cls(**{name: getattr(proposal, f"proposed_{name}") for name in EDITABLE_FIELDS})

    # ── Queries ──────────────────────────────────────────────────────────

    def items(self):
        """Yield (field, value) for every non-null field in declaration order."""
        for name in EDITABLE_FIELDS:
            value = getattr(self, name)
            if value is not None:
                yield name, value

    def is_empty(self) -> bool:
        return next(self.items(), None) is None

    def changed_against(self, idea) -> list[str]:
        """Fields whose value differs from *idea*'s current value.

        Raw inequality, so whitespace-only edits count as changes.
        """
        return [name for name, value in self.items() if value != getattr(idea, name)]

    def as_proposed_columns(self) -> dict:
        return {f"proposed_{name}": getattr(self, name) for name in EDITABLE_FIELDS}

    # ── Mutation ─────────────────────────────────────────────────────────

    def merged_with(self, override: "IdeaPatch") -> "IdeaPatch":
        """Return a copy where *override*'s non-null values win."""
        return replace(self, **dict(override.items()))

    def apply_to(self, idea) -> list[str]:
        """Write non-null values onto *idea*; returns the fields written."""
        applied = []
        for name, value in self.items():
            setattr(idea, name, value)
            applied.append(name)
        return applied


EDITABLE_FIELDS = tuple(f.name for f in fields(IdeaPatch))

_BOOL_FIELDS = frozenset(f.name for f in fields(IdeaPatch) if f.type == bool | None)


def _coerce(name, value):
    if name == "collaboration_deadline":
        return _coerce_date(value)
    if name in _BOOL_FIELDS:
        if not isinstance(value, bool):
            raise ValueError("must be true or false")
        return value
    if not isinstance(value, str):
        raise ValueError("must be a string")
    limit = _TEXT_LIMITS.get(name)
    if limit and len(value) > limit:
        raise ValueError(f"must be at most {limit} characters")
    return value


def _coerce_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            raise ValueError("must be an ISO date (YYYY-MM-DD)") from None
    raise ValueError("must be an ISO date (YYYY-MM-DD)")


def snapshot_fields(source) -> dict:
    """Copy every editable field (nulls included) off an Idea or IdeaVersion."""
    return {name: getattr(source, name) for name in EDITABLE_FIELDS}
