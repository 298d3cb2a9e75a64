"""Sequencer behaviour: resumability, fallback and cleanup."""

import threading

import pytest

from stepflow import Alternative, Outcome, RunStatus, Sequencer, Step, StepContext
from stepflow.errors import MarkerStoreIOError, StepNotApplicable
from stepflow.markers import FileMarkerStore, InMemoryMarkerStore
from stepflow.prerequisites import Requirement


class Recorder:
    """Builds step actions that record their invocation order."""

    def __init__(self):
        self.calls = []
        self.failing = set()

    def action(self, name):
        def run(context):
            self.calls.append(name)
            if name in self.failing:
                raise RuntimeError(f"{name} exploded")

        return run

    def steps(self, *names):
        return [Step(name=name, action=self.action(name)) for name in names]


def marker_names(store):
    return sorted(marker.step_name for marker in store.list_markers())


def test_second_run_skips_every_completed_step():
    recorder = Recorder()
    store = InMemoryMarkerStore()
    sequencer = Sequencer(recorder.steps("a", "b", "c"), store, reset_on_success=False)

    first = sequencer.run()
    second = sequencer.run()

    assert first.status == RunStatus.COMPLETED
    assert second.status == RunStatus.COMPLETED
    assert recorder.calls == ["a", "b", "c"]
    assert set(second.outcomes().values()) == {Outcome.SKIPPED_ALREADY_DONE}


def test_aborted_run_resumes_at_failed_step():
    recorder = Recorder()
    recorder.failing.add("c")
    store = InMemoryMarkerStore()
    steps = recorder.steps("a", "b", "c", "d")
    sequencer = Sequencer(steps, store, reset_on_success=False)

    report = sequencer.run()
    assert report.status == RunStatus.ABORTED
    assert report.failed_step == "c"
    assert report.exit_code == 1
    assert "d" not in report.outcomes()
    assert marker_names(store) == ["a", "b"]
    assert "Re-run the same command" in report.summary()

    recorder.failing.clear()
    recorder.calls.clear()
    resumed = sequencer.run()

    assert resumed.status == RunStatus.COMPLETED
    assert recorder.calls == ["c", "d"]
    assert resumed.outcomes()["a"] == Outcome.SKIPPED_ALREADY_DONE
    assert resumed.outcomes()["b"] == Outcome.SKIPPED_ALREADY_DONE

    uninterrupted = InMemoryMarkerStore()
    Sequencer(Recorder().steps("a", "b", "c", "d"), uninterrupted, reset_on_success=False).run()
    assert marker_names(store) == marker_names(uninterrupted)


def test_fallback_choice_is_recorded_and_not_reselected():
    calls = []
    primary_available = {"value": False}

    def make(name):
        return lambda context: calls.append((name, context.alternative))

    step = Step(
        name="database",
        alternatives=[
            Alternative(name="mysql", action=make("mysql"), probe=lambda: primary_available["value"]),
            Alternative(name="sqlite", action=make("sqlite")),
        ],
    )
    store = InMemoryMarkerStore()
    sequencer = Sequencer([step], store, reset_on_success=False)

    report = sequencer.run()
    entry = report.entry_for("database")
    assert entry.outcome == Outcome.SUCCESS
    assert entry.alternative == "sqlite"
    assert [attempt.name for attempt in entry.attempts] == ["mysql"]
    assert calls == [("sqlite", "sqlite")]
    assert store.get("database").alternative == "sqlite"

    primary_available["value"] = True
    rerun = sequencer.run()
    assert rerun.entry_for("database").outcome == Outcome.SKIPPED_ALREADY_DONE
    assert rerun.entry_for("database").alternative == "sqlite"
    assert calls == [("sqlite", "sqlite")]


def test_exhausted_alternatives_abort_without_marker():
    def fail(context):
        raise RuntimeError(f"{context.alternative} down")

    recorder = Recorder()
    steps = [
        Step(
            name="database",
            alternatives=[
                Alternative(name="mysql", action=fail),
                Alternative(name="sqlite", action=fail),
            ],
        ),
        *recorder.steps("after"),
    ]
    store = InMemoryMarkerStore()

    report = Sequencer(steps, store).run()

    entry = report.entry_for("database")
    assert entry.outcome == Outcome.FATAL_FAILURE
    assert report.status == RunStatus.ABORTED
    assert report.failed_step == "database"
    assert [attempt.name for attempt in entry.attempts] == ["mysql", "sqlite"]
    assert "mysql down" in entry.message and "sqlite down" in entry.message
    assert not store.is_complete("database")
    assert recorder.calls == []


def test_missing_prerequisites_are_all_reported_before_any_step():
    recorder = Recorder()
    requirements = [
        Requirement(name="PHP", probe=lambda: False),
        Requirement(name="Git", probe=lambda: True),
        Requirement(name="Composer", probe=lambda: False),
    ]
    sequencer = Sequencer(recorder.steps("a"), InMemoryMarkerStore(), requirements=requirements)

    report = sequencer.run()

    assert report.status == RunStatus.PREREQUISITES_MISSING
    assert report.missing_requirements == ["PHP", "Composer"]
    assert report.entries == []
    assert recorder.calls == []
    assert report.exit_code == 1


def test_successful_run_clears_markers_for_next_install():
    recorder = Recorder()
    store = InMemoryMarkerStore()
    sequencer = Sequencer(recorder.steps("a", "b"), store)

    report = sequencer.run()
    assert report.completed
    assert report.markers_reset
    assert store.list_markers() == []

    sequencer.run()
    assert recorder.calls == ["a", "b", "a", "b"]


def test_not_applicable_step_leaves_no_marker():
    def needs_npm(context):
        raise StepNotApplicable("npm not found")

    store = InMemoryMarkerStore()
    sequencer = Sequencer([Step(name="assets", action=needs_npm)], store, reset_on_success=False)

    report = sequencer.run()

    assert report.completed
    assert report.outcomes()["assets"] == Outcome.SKIPPED_NOT_APPLICABLE
    assert not store.is_complete("assets")


def test_recoverable_failure_without_alternatives_is_fatal():
    recorder = Recorder()
    recorder.failing.add("optional")
    steps = [Step(name="optional", action=recorder.action("optional"), critical=False)]

    report = Sequencer(steps, InMemoryMarkerStore()).run()

    assert report.outcomes()["optional"] == Outcome.FATAL_FAILURE
    assert report.status == RunStatus.ABORTED


def test_primary_action_is_tried_before_alternatives():
    calls = []
    step = Step(
        name="db",
        action=lambda context: calls.append(context.alternative),
        alternatives=[Alternative(name="sqlite", action=lambda context: calls.append("sqlite"))],
    )

    report = Sequencer([step], InMemoryMarkerStore()).run()

    assert report.entry_for("db").alternative == "primary"
    assert calls == ["primary"]


class BrokenWriteStore(InMemoryMarkerStore):
    def mark_complete(self, step_name, alternative=None):
        raise MarkerStoreIOError("disk full")


class BrokenReadStore(InMemoryMarkerStore):
    def get(self, step_name):
        raise MarkerStoreIOError("permission denied")


class BrokenResetStore(InMemoryMarkerStore):
    def reset(self, step_names=None):
        raise MarkerStoreIOError("read-only filesystem")


def test_marker_write_failure_halts_run():
    recorder = Recorder()
    report = Sequencer(recorder.steps("a", "b"), BrokenWriteStore()).run()

    assert report.status == RunStatus.ABORTED
    assert report.failed_step == "a"
    assert "disk full" in report.entry_for("a").message
    assert recorder.calls == ["a"]


def test_marker_read_failure_halts_run():
    recorder = Recorder()
    report = Sequencer(recorder.steps("a"), BrokenReadStore()).run()

    assert report.outcomes()["a"] == Outcome.FATAL_FAILURE
    assert recorder.calls == []


def test_cleanup_failure_is_reported_on_completed_run():
    report = Sequencer(Recorder().steps("a"), BrokenResetStore()).run()

    assert report.completed
    assert not report.markers_reset
    assert report.cleanup_error == "read-only filesystem"


def test_file_markers_are_cleared_for_steps_named_like_temp_files(tmp_path):
    recorder = Recorder()
    sequencer = Sequencer(recorder.steps("backup.tmp", "backup"), FileMarkerStore(tmp_path))

    first = sequencer.run()
    second = sequencer.run()

    assert first.markers_reset
    assert not list(tmp_path.iterdir())
    assert second.outcomes() == {"backup.tmp": Outcome.SUCCESS, "backup": Outcome.SUCCESS}
    assert recorder.calls == ["backup.tmp", "backup", "backup.tmp", "backup"]


def test_step_name_unusable_by_store_aborts_run(tmp_path):
    recorder = Recorder()
    report = Sequencer(recorder.steps("db/setup", "seed"), FileMarkerStore(tmp_path)).run()

    assert report.status == RunStatus.ABORTED
    assert report.failed_step == "db/setup"
    assert "db/setup" in report.entry_for("db/setup").message
    assert recorder.calls == []


def test_cancel_takes_effect_at_next_step_boundary():
    store = InMemoryMarkerStore()
    calls = []
    holder = {}

    def first(context):
        calls.append("first")
        holder["sequencer"].cancel()

    steps = [
        Step(name="first", action=first),
        Step(name="second", action=lambda context: calls.append("second")),
    ]
    sequencer = Sequencer(steps, store)
    holder["sequencer"] = sequencer

    report = sequencer.run()

    assert report.status == RunStatus.CANCELLED
    assert report.next_step == "second"
    assert calls == ["first"]
    assert store.is_complete("first")


def test_external_cancel_event_stops_before_first_step():
    recorder = Recorder()
    event = threading.Event()
    event.set()

    report = Sequencer(recorder.steps("a"), InMemoryMarkerStore()).run(cancel_event=event)

    assert report.status == RunStatus.CANCELLED
    assert recorder.calls == []


def test_only_runs_selected_steps_and_keeps_markers():
    recorder = Recorder()
    store = InMemoryMarkerStore()
    sequencer = Sequencer(recorder.steps("a", "b", "c"), store)

    report = sequencer.run(only=["c", "a"])

    assert recorder.calls == ["a", "c"]
    assert report.completed
    assert marker_names(store) == ["a", "c"]

    with pytest.raises(ValueError):
        sequencer.run(only=["missing"])


def test_entries_are_streamed_and_context_is_shared():
    seen = []

    def remember(context):
        context.variables["database"] = "sqlite"

    context = StepContext()
    steps = [Step(name="remember", action=remember)]
    Sequencer(steps, InMemoryMarkerStore()).run(context, on_entry=seen.append)

    assert [entry.step_name for entry in seen] == ["remember"]
    assert context.variables == {"database": "sqlite"}


def test_duplicate_step_names_are_rejected():
    recorder = Recorder()
    with pytest.raises(ValueError):
        Sequencer(recorder.steps("a", "a"), InMemoryMarkerStore())


def test_step_requires_action_or_alternatives():
    with pytest.raises(ValueError):
        Step(name="empty")
