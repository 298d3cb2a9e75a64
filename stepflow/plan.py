"""Declarative YAML plans compiled into sequencer steps."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, PrivateAttr, ValidationError, model_validator

from .collaborators import (
    CapabilityProbe,
    CommandRunner,
    DotenvFile,
    EnvFile,
    FileTemplateWriter,
    Installer,
    Migration,
    ProbeSpec,
    ShellInstaller,
    ShellMigration,
    SubprocessCommandRunner,
    TemplateWriter,
)
from .contracts import Alternative, Step, StepContext, StepResult
from .errors import PlanError, StepNotApplicable
from .prerequisites import Requirement

logger = logging.getLogger(__name__)

STEP_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_.-]*$"
EnvValue = Optional[Union[str, int, float, bool]]


class FileSpec(BaseModel):
    """A generated file, given inline or read from a template next to the plan."""

    path: str
    content: Optional[str] = None
    source: Optional[str] = None

    @model_validator(mode="after")
    def _check_body(self) -> "FileSpec":
        if (self.content is None) == (self.source is None):
            raise ValueError(f"file {self.path} needs exactly one of content, source")
        return self


class ActionSpec(BaseModel):
    """Side effects of a step or alternative, applied in field order."""

    install: List[str] = Field(default_factory=list)
    run: List[str] = Field(default_factory=list)
    files: List[FileSpec] = Field(default_factory=list)
    env: Dict[str, EnvValue] = Field(default_factory=dict)
    migrate: bool = False
    variables: Dict[str, Any] = Field(default_factory=dict)

    def has_effects(self) -> bool:
        return bool(
            self.install or self.run or self.files or self.env or self.migrate or self.variables
        )


class AlternativeSpec(ActionSpec):
    name: str
    probe: Optional[ProbeSpec] = None


class StepSpec(ActionSpec):
    name: str = Field(pattern=STEP_NAME_PATTERN)
    description: str = ""
    critical: bool = True
    cwd: Optional[str] = None
    when: List[ProbeSpec] = Field(default_factory=list)
    unless: List[ProbeSpec] = Field(default_factory=list)
    alternatives: List[AlternativeSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_gates(self) -> "StepSpec":
        if self.alternatives and (self.when or self.unless):
            raise ValueError(
                f"step {self.name}: 'when'/'unless' cannot be combined with alternatives; "
                "use alternative probes instead"
            )
        return self


class RequirementSpec(ProbeSpec):
    name: str
    hint: Optional[str] = None


class Plan(BaseModel):
    """Top-level plan document."""

    name: str = "stepflow"
    description: str = ""
    workdir: str = "."
    env_file: str = ".env"
    installer: str = "composer require {target}"
    migrate_command: str = "php artisan migrate --force"
    serve: Optional[str] = None
    requires: List[RequirementSpec] = Field(default_factory=list)
    steps: List[StepSpec] = Field(default_factory=list)

    _base_dir: Path = PrivateAttr(default_factory=Path.cwd)

    @model_validator(mode="after")
    def _check_unique_steps(self) -> "Plan":
        seen: set[str] = set()
        for step in self.steps:
            if step.name in seen:
                raise ValueError(f"duplicate step name: {step.name}")
            seen.add(step.name)
        return self

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def step_names(self) -> list[str]:
        return [step.name for step in self.steps]

    def step_cwd(self, spec: StepSpec) -> Path:
        return (self.base_dir / (spec.cwd if spec.cwd is not None else self.workdir)).resolve()

    @property
    def serve_cwd(self) -> Path:
        return (self.base_dir / self.workdir).resolve()


def load_plan(path: Union[str, Path]) -> Plan:
    """Load and validate a plan file; relative paths resolve next to it."""

    plan_path = Path(path)
    if not plan_path.is_file():
        raise PlanError(f"Plan file not found: {plan_path}")
    try:
        data = yaml.safe_load(plan_path.read_text(encoding="utf-8")) or {}
        plan = Plan(**data)
    except (yaml.YAMLError, ValidationError, TypeError) as exc:
        raise PlanError(f"Invalid plan {plan_path}: {exc}") from exc
    plan._base_dir = plan_path.resolve().parent
    return plan


class PlanCompiler:
    """Turn a ``Plan`` into ``Step`` and ``Requirement`` objects.

    Every side effect goes through one of the collaborators, so tests can swap
    in fakes for the installer, command runner, writer or migration runner.
    """

    def __init__(
        self,
        plan: Plan,
        runner: Optional[CommandRunner] = None,
        installer: Optional[Installer] = None,
        writer: Optional[TemplateWriter] = None,
        migration: Optional[Migration] = None,
        env_file: Optional[EnvFile] = None,
        probe: Optional[CapabilityProbe] = None,
    ) -> None:
        self.plan = plan
        self.runner = runner or SubprocessCommandRunner()
        self.installer = installer or ShellInstaller(self.runner, plan.installer)
        self.writer = writer or FileTemplateWriter()
        self.migration = migration or ShellMigration(self.runner, plan.migrate_command)
        self.env_file = env_file or DotenvFile()
        self.probe = probe or CapabilityProbe(self.runner)

    def requirements(self) -> list[Requirement]:
        return [
            Requirement(
                name=spec.name,
                hint=spec.hint,
                probe=self._bind_probe(spec, self.plan.base_dir),
            )
            for spec in self.plan.requires
        ]

    def steps(self) -> list[Step]:
        return [self.step(spec) for spec in self.plan.steps]

    def context(self) -> StepContext:
        return StepContext(workdir=self.plan.base_dir)

    def step(self, spec: StepSpec) -> Step:
        cwd = self.plan.step_cwd(spec)
        action = self._gated_action(spec, cwd) if (spec.has_effects() or not spec.alternatives) else None
        return Step(
            name=spec.name,
            description=spec.description,
            critical=spec.critical,
            action=action,
            alternatives=[
                Alternative(
                    name=alt.name,
                    action=self._action(alt, cwd),
                    probe=self._bind_probe(alt.probe, cwd) if alt.probe else None,
                    critical=spec.critical,
                )
                for alt in spec.alternatives
            ],
        )

    # ------------------------------------------------------------------
    def _bind_probe(self, spec: ProbeSpec, cwd: Path):
        return lambda: self.probe.check(spec, cwd)

    def _gated_action(self, spec: StepSpec, cwd: Path):
        perform = self._action(spec, cwd)

        def action(context: StepContext) -> Any:
            for gate in spec.when:
                if not self.probe.check(gate, cwd):
                    raise StepNotApplicable(f"{gate.describe()} not available")
            for gate in spec.unless:
                if self.probe.check(gate, cwd):
                    logger.info(f"Step {spec.name}: {gate.describe()} already present")
                    return StepResult.success(f"{gate.describe()} already present")
            return perform(context)

        return action

    def _action(self, spec: ActionSpec, cwd: Path):
        def action(context: StepContext) -> None:
            for target in spec.install:
                self.installer.install(target, cwd=cwd)
            for command in spec.run:
                self.runner.run(command, cwd=cwd)
            for file_spec in spec.files:
                self.writer.write_file(cwd / file_spec.path, self._file_content(file_spec))
            if spec.env:
                self.env_file.apply(
                    cwd / self.plan.env_file,
                    {key: None if value is None else _env_str(value) for key, value in spec.env.items()},
                )
            if spec.migrate:
                self.migration.apply(cwd=cwd)
            context.variables.update(spec.variables)

        return action

    def _file_content(self, spec: FileSpec) -> str:
        if spec.content is not None:
            return spec.content
        source = self.plan.base_dir / spec.source
        try:
            return source.read_text(encoding="utf-8")
        except OSError as exc:
            raise PlanError(f"Cannot read template {source}: {exc}") from exc


def _env_str(value: Union[str, int, float, bool]) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
