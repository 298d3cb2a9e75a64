"""Strategy selection performed by FallbackResolver."""

from stepflow import Alternative, FallbackResolver, Outcome, Step, StepContext
from stepflow.errors import AllAlternativesExhausted, StepRecoverableFailure


def test_first_successful_alternative_wins():
    calls = []
    step = Step(
        name="database",
        alternatives=[
            Alternative(name="mysql", action=lambda c: calls.append("mysql")),
            Alternative(name="sqlite", action=lambda c: calls.append("sqlite")),
        ],
    )

    result = FallbackResolver().resolve(step, StepContext())

    assert result.outcome == Outcome.SUCCESS
    assert result.alternative == "mysql"
    assert result.attempts == []
    assert calls == ["mysql"]


def test_failed_probe_skips_action():
    calls = []
    step = Step(
        name="database",
        alternatives=[
            Alternative(name="mysql", action=lambda c: calls.append("mysql"), probe=lambda: False),
            Alternative(name="sqlite", action=lambda c: calls.append("sqlite")),
        ],
    )

    result = FallbackResolver().resolve(step, StepContext())

    assert calls == ["sqlite"]
    assert result.alternative == "sqlite"
    assert result.attempts[0].name == "mysql"
    assert result.attempts[0].reason == "probe failed"


def test_probe_that_raises_counts_as_failed():
    def probe():
        raise OSError("no socket")

    step = Step(
        name="database",
        alternatives=[
            Alternative(name="mysql", action=lambda c: None, probe=probe),
            Alternative(name="sqlite", action=lambda c: None),
        ],
    )

    result = FallbackResolver().resolve(step, StepContext())

    assert result.alternative == "sqlite"
    assert "no socket" in result.attempts[0].reason


def test_exhaustion_lists_every_attempt():
    def unreachable(context):
        raise StepRecoverableFailure(f"{context.alternative} unreachable")

    step = Step(
        name="database",
        alternatives=[
            Alternative(name="mysql", action=unreachable),
            Alternative(name="postgres", action=lambda c: None, probe=lambda: False),
            Alternative(name="sqlite", action=unreachable),
        ],
    )

    result = FallbackResolver().resolve(step, StepContext())

    assert result.outcome == Outcome.FATAL_FAILURE
    assert result.alternative is None
    assert isinstance(result.error, AllAlternativesExhausted)
    assert result.error.attempts == [
        ("mysql", "mysql unreachable"),
        ("postgres", "probe failed"),
        ("sqlite", "sqlite unreachable"),
    ]


def test_not_applicable_alternative_is_not_chosen():
    from stepflow.errors import StepNotApplicable

    def not_here(context):
        raise StepNotApplicable("not installed")

    step = Step(
        name="cache",
        alternatives=[
            Alternative(name="redis", action=not_here),
            Alternative(name="file", action=lambda c: None),
        ],
    )

    result = FallbackResolver().resolve(step, StepContext())

    assert result.alternative == "file"
    assert result.attempts[0].outcome == Outcome.SKIPPED_NOT_APPLICABLE
