"""
Wizard progression state machine (service layer).

Covers:
  - workflow creation / conflict / lazy creation on first save
  - current_step advances only when the current step is completed
  - step 9 completion sets is_completed once
  - auto-propagation after completion (default catalog), and its kill switch
  - navigation rules and step statuses
  - progress summary, time estimate and aggregate stats
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.services import data_flow_service, workflow_service as ws


def _complete(project, step_id, responses=None):
    wf, row = ws.save_step(project, step_id, responses or {"answer": step_id}, completed=True)
    db.session.commit()
    return wf, row


# ═══════════════════════════════════════════════════════════════
# Lifecycle
# ═══════════════════════════════════════════════════════════════

class TestLifecycle:
    def test_new_workflow_starts_at_step_one(self, workflow):
        assert workflow.current_step == 1
        assert workflow.is_completed is False
        assert workflow.completed_at is None
        assert workflow.started_at is not None

    def test_second_workflow_conflicts(self, workflow, project):
        with pytest.raises(ConflictError):
            ws.create_workflow(project)

    def test_require_workflow_without_one(self, project):
        with pytest.raises(NotFoundError):
            ws.require_workflow(project)

    def test_first_save_creates_workflow_lazily(self, project):
        assert ws.get_workflow(project) is None
        wf, row = ws.save_step(project, 1, {"appIdea": "Habit tracker"})
        db.session.commit()
        assert wf.current_step == 1
        assert row.completed is False
        assert len(data_flow_service.list_relationships(project.id)) > 0

    def test_save_rejects_bad_input(self, workflow, project):
        with pytest.raises(ValidationError):
            ws.save_step(project, 10, {})
        with pytest.raises(ValidationError):
            ws.save_step(project, 1, ["not", "a", "dict"])
        with pytest.raises(ValidationError):
            ws.save_step(project, 1, {}, completed="yes")


# ═══════════════════════════════════════════════════════════════
# Transitions
# ═══════════════════════════════════════════════════════════════

class TestTransitions:
    def test_completing_current_step_advances_by_one(self, workflow, project):
        wf, _ = _complete(project, 1)
        assert wf.current_step == 2
        wf, _ = _complete(project, 2)
        assert wf.current_step == 3

    def test_saving_without_completion_does_not_advance(self, workflow, project):
        wf, row = ws.save_step(project, 1, {"appIdea": "draft"})
        db.session.commit()
        assert wf.current_step == 1
        assert row.completed is False

    def test_completing_an_earlier_step_does_not_move_current(self, workflow, project):
        for step in (1, 2, 3):
            _complete(project, step)
        wf, _ = _complete(project, 1, {"appIdea": "edited"})
        assert wf.current_step == 4

    def test_completing_a_future_step_does_not_jump(self, workflow, project):
        wf, row = _complete(project, 5)
        assert row.completed is True
        assert wf.current_step == 1

    def test_uncompleting_never_moves_backward(self, workflow, project):
        _complete(project, 1)
        _complete(project, 2)
        wf, row = ws.save_step(project, 2, {"answer": 2}, completed=False)
        db.session.commit()
        assert row.completed is False
        assert wf.current_step == 3

    def test_autosave_keeps_completed_flag(self, workflow, project):
        _complete(project, 1, {"appIdea": "v1"})
        _, row = ws.save_step(project, 1, {"appIdea": "v2"})
        db.session.commit()
        assert row.completed is True
        assert row.responses == {"appIdea": "v2"}

    def test_responses_none_keeps_answers(self, workflow, project):
        ws.save_step(project, 1, {"appIdea": "kept"})
        _, row = ws.save_step(project, 1, None, ai_suggestions="Consider streak rewards")
        db.session.commit()
        assert row.responses == {"appIdea": "kept"}
        assert row.ai_suggestions == "Consider streak rewards"

    def test_walking_all_steps_completes_workflow(self, workflow, project):
        for step in range(1, 10):
            wf, _ = _complete(project, step)
        assert wf.current_step == 9
        assert wf.is_completed is True
        assert wf.completed_at is not None

    def test_step_nine_completion_is_idempotent(self, workflow, project):
        wf, _ = _complete(project, 9)
        first = wf.completed_at
        assert wf.is_completed is True

        wf, _ = _complete(project, 9, {"feedback": "again"})
        assert wf.completed_at == first
        assert wf.current_step == 1

    def test_current_step_stays_in_range(self, workflow, project):
        for step in range(1, 10):
            wf, _ = _complete(project, step)
            assert 1 <= wf.current_step <= 9


# ═══════════════════════════════════════════════════════════════
# Auto-propagation
# ═══════════════════════════════════════════════════════════════

class TestAutoPropagation:
    def test_completion_runs_default_flows(self, workflow, project):
        _complete(project, 1, {"appName": "Habits", "appIdea": "Habit tracker"})
        row = ws.get_step_response(project, 2)
        assert row.responses == {"projectName": "Habits", "initialIdea": "Habit tracker"}
        assert row.completed is False

    def test_propagation_merges_into_existing_answers(self, workflow, project):
        ws.save_step(project, 2, {"valueProp": "Streaks"})
        _complete(project, 1, {"appName": "Habits"})
        assert ws.get_step_response(project, 2).responses == {
            "valueProp": "Streaks", "projectName": "Habits",
        }

    def test_plain_save_does_not_propagate(self, workflow, project):
        ws.save_step(project, 1, {"appName": "Habits"})
        db.session.commit()
        assert ws.get_step_response(project, 2) is None

    def test_kill_switch_disables_propagation(self, app, workflow, project, monkeypatch):
        monkeypatch.setitem(app.config, "DATA_FLOW_AUTO_PROPAGATE", False)
        wf, _ = _complete(project, 1, {"appName": "Habits"})
        assert wf.current_step == 2
        assert ws.get_step_response(project, 2) is None

    def test_propagation_failure_does_not_fail_save(self, workflow, project, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("propagation exploded")

        monkeypatch.setattr(data_flow_service, "propagate_from_step", boom)
        wf, row = _complete(project, 1, {"appName": "Habits"})
        assert row.completed is True
        assert wf.current_step == 2

    def test_transform_error_is_logged_not_raised(self, workflow, project):
        wf, _ = _complete(project, 3, {"userPersonas": "not a list"})
        assert ws.get_step_response(project, 3).completed is True
        assert ws.get_step_response(project, 4) is None


# ═══════════════════════════════════════════════════════════════
# Navigation
# ═══════════════════════════════════════════════════════════════

class TestNavigation:
    def test_fresh_workflow(self, workflow):
        assert ws.can_navigate_to_step(workflow, 1) is True
        assert ws.can_navigate_to_step(workflow, 2) is False
        assert ws.step_status(workflow, 1) == "current"
        assert ws.step_status(workflow, 2) == "locked"

    def test_next_step_opens_after_completion(self, workflow, project):
        wf, _ = _complete(project, 1)
        assert ws.can_navigate_to_step(wf, 2) is True
        assert ws.can_navigate_to_step(wf, 3) is False
        assert ws.step_status(wf, 1) == "completed"
        assert ws.step_status(wf, 2) == "current"

    def test_completed_future_step_is_reachable(self, workflow, project):
        _complete(project, 6)
        assert ws.can_navigate_to_step(workflow, 6) is True
        assert ws.step_status(workflow, 6) == "completed"

    def test_revisiting_uncompleted_earlier_step_is_available(self, workflow, project):
        _complete(project, 1)
        _complete(project, 2)
        ws.save_step(project, 1, {"x": 1}, completed=False)
        db.session.commit()
        assert ws.step_status(workflow, 1) == "available"

    def test_navigation_state(self, workflow, project):
        wf, _ = _complete(project, 1)
        nav = ws.navigation_state(wf)
        assert nav["step_id"] == 2
        assert nav["can_go_previous"] is True
        assert nav["can_go_next"] is False
        assert nav["is_first_step"] is False
        assert nav["completed_steps"] == 1
        assert nav["total_steps"] == 9
        assert nav["percent_complete"] == 11
        assert [s["status"] for s in nav["steps"][:3]] == ["completed", "current", "locked"]

    def test_navigation_state_for_explicit_step(self, workflow):
        nav = ws.navigation_state(workflow, 1)
        assert nav["is_first_step"] is True
        assert nav["can_go_previous"] is False
        with pytest.raises(ValidationError):
            ws.navigation_state(workflow, 0)


# ═══════════════════════════════════════════════════════════════
# Progress
# ═══════════════════════════════════════════════════════════════

class TestProgress:
    NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("completed, hours, expected", [
        (1, 5, None),            # too few steps
        (3, 0.25, None),         # too little history
        (3, 1, 6 * 20),
        (4, 1, 5 * 15),
        (6, 1, 3 * 15),          # 10 min/step clamps up to 15
        (6, 2, 3 * 20),          # 20 min/step
        (2, 10, None),           # 30 min/step * 7 = 210 > 180
        (8, 8, 30),              # pace clamps down to 30
    ])
    def test_estimate_minutes_remaining(self, completed, hours, expected):
        started = self.NOW - timedelta(hours=hours)
        assert ws.estimate_minutes_remaining(completed, started, self.NOW) == expected

    def test_estimate_accepts_naive_start(self):
        started = (self.NOW - timedelta(hours=2)).replace(tzinfo=None)
        assert ws.estimate_minutes_remaining(6, started, self.NOW) == 60

    def test_project_progress_without_workflow(self, project):
        progress = ws.project_progress(project)
        assert progress["current_step"] == 1
        assert progress["completed_steps"] == 0
        assert progress["is_completed"] is False
        assert progress["last_activity"] is None
        assert len(progress["step_statuses"]) == 9

    def test_project_progress_counts_steps(self, workflow, project):
        _complete(project, 1, {"appName": "Habits"})
        progress = ws.project_progress(project)
        assert progress["project_name"] == "Habit tracker"
        assert progress["completed_steps"] == 1
        assert progress["current_step"] == 2
        assert progress["percent_complete"] == 11
        assert progress["last_activity"] is not None
        statuses = {s["step_id"]: s for s in progress["step_statuses"]}
        assert statuses[1] == {"step_id": 1, "title": "Describe Your Idea", "completed": True, "has_data": True}
        # step 2 received propagated data but is not completed
        assert statuses[2]["has_data"] is True
        assert statuses[2]["completed"] is False

    def test_progress_stats(self):
        rows = [
            {"is_completed": True, "completed_steps": 9},
            {"is_completed": False, "completed_steps": 3},
            {"is_completed": False, "completed_steps": 0},
            {"is_completed": False, "completed_steps": 0},
        ]
        assert ws.progress_stats(rows) == {
            "total": 4, "completed": 1, "in_progress": 1, "not_started": 2, "completion_rate": 25,
        }

    def test_progress_stats_empty(self):
        assert ws.progress_stats([])["completion_rate"] == 0
