"""Unit tests for IdeaPatch — the typed editable-field patch."""

from datetime import date
from types import SimpleNamespace

import pytest

from ideahub.core.exceptions import ValidationError
from ideahub.core.idea_patch import EDITABLE_FIELDS, IdeaPatch, snapshot_fields


def _idea(**overrides):
    values = {name: None for name in EDITABLE_FIELDS}
    values.update(title="Original title", abstract="Original abstract",
                  collaboration_enabled=False, team_effort=False)
    values.update(overrides)
    return SimpleNamespace(**values)


def test_editable_fields_are_the_eleven_idea_fields():
    assert EDITABLE_FIELDS == (
        "title", "abstract", "problem_statement", "proposed_solution",
        "cost_benefit_analysis", "declaration_of_interests",
        "original_idea_disclaimer", "collaboration_enabled", "team_effort",
        "comments_enabled", "collaboration_deadline",
    )


def test_null_and_absent_fields_mean_no_change():
    patch = IdeaPatch.from_mapping({"abstract": "New abstract", "title": None})
    assert dict(patch.items()) == {"abstract": "New abstract"}
    assert not patch.is_empty()
    assert IdeaPatch.from_mapping(None).is_empty()


def test_unknown_field_is_rejected():
    with pytest.raises(ValidationError) as exc:
        IdeaPatch.from_mapping({"status": "approved"})
    assert exc.value.details == {"status": "unknown field"}


def test_wrong_value_types_are_reported_per_field():
    with pytest.raises(ValidationError) as exc:
        IdeaPatch.from_mapping({"team_effort": "yes", "abstract": 5,
                                "collaboration_deadline": "next week"})
    assert set(exc.value.details) == {"team_effort", "abstract", "collaboration_deadline"}


def test_non_object_payload_is_rejected():
    with pytest.raises(ValidationError):
        IdeaPatch.from_mapping(["title"])


def test_deadline_is_parsed_from_iso_date():
    patch = IdeaPatch.from_mapping({"collaboration_deadline": "2030-05-01"})
    assert patch.collaboration_deadline == date(2030, 5, 1)


def test_changed_against_uses_raw_inequality():
    """Whitespace-only edits still count as changes."""
    idea = _idea()
    patch = IdeaPatch.from_mapping({"title": "Original title", "abstract": "Original abstract "})
    assert patch.changed_against(idea) == ["abstract"]


def test_false_is_a_value_not_a_null():
    idea = _idea(collaboration_enabled=True)
    patch = IdeaPatch.from_mapping({"collaboration_enabled": False})
    assert patch.changed_against(idea) == ["collaboration_enabled"]
    patch.apply_to(idea)
    assert idea.collaboration_enabled is False


def test_merged_with_lets_override_win():
    base = IdeaPatch.from_mapping({"title": "Proposed title", "abstract": "Proposed abstract"})
    merged = base.merged_with(IdeaPatch.from_mapping({"abstract": "Edited by author"}))
    assert dict(merged.items()) == {"title": "Proposed title", "abstract": "Edited by author"}


def test_apply_to_writes_only_non_null_values():
    idea = _idea(problem_statement="Keep me")
    written = IdeaPatch.from_mapping({"abstract": "Replaced"}).apply_to(idea)
    assert written == ["abstract"]
    assert idea.problem_statement == "Keep me"


def test_snapshot_fields_copies_nulls_too():
    snap = snapshot_fields(_idea())
    assert set(snap) == set(EDITABLE_FIELDS)
    assert snap["problem_statement"] is None
