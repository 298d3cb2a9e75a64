"""Drive the sequencer from Python instead of a YAML plan.

Run it twice: the first run aborts at ``publish`` (the flaky step fails on
purpose), the second resumes there and completes.
"""

import logging
import shutil
from pathlib import Path

from stepflow import Alternative, Requirement, Sequencer, Step, StepContext
from stepflow.errors import StepNotApplicable, StepRecoverableFailure
from stepflow.markers import FileMarkerStore

WORKDIR = Path(".example-run")
FLAG = WORKDIR / "publish.ok"


def write_config(context: StepContext) -> None:
    (context.workdir / "app.cfg").write_text("debug = false\n")


def use_postgres(context: StepContext) -> None:
    raise StepRecoverableFailure("postgres is not reachable")


def use_sqlite(context: StepContext) -> None:
    (context.workdir / "app.db").touch()
    context.variables["database"] = "sqlite"


def build_docs(context: StepContext) -> None:
    if shutil.which("mkdocs") is None:
        raise StepNotApplicable("mkdocs not installed")


def publish(context: StepContext) -> None:
    if not FLAG.exists():
        FLAG.touch()
        raise RuntimeError("upload failed")


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    WORKDIR.mkdir(exist_ok=True)

    steps = [
        Step(name="write_config", action=write_config),
        Step(
            name="database",
            alternatives=[
                Alternative(name="postgres", action=use_postgres),
                Alternative(name="sqlite", action=use_sqlite),
            ],
        ),
        Step(name="build_docs", action=build_docs),
        Step(name="publish", action=publish),
    ]
    sequencer = Sequencer(
        steps,
        FileMarkerStore(WORKDIR),
        requirements=[Requirement(name="Workdir", probe=WORKDIR.is_dir)],
    )

    report = sequencer.run(StepContext(workdir=WORKDIR))
    for entry in report.entries:
        print(entry.render())
    print(report.summary())


if __name__ == "__main__":
    main()
