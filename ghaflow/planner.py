"""Planning workflow runs into stages of jobs that can run in parallel."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from ghaflow.workflow import Job, Workflow, WorkflowError, read_workflow

_log = logging.getLogger(__name__)

_JOB_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_\-]*")


class PlanError(ValueError):
    """Workflows could not be loaded or planned.

    When raised by a planning method, ``plan`` holds the stages that were
    planned successfully before the last failure.
    """

    def __init__(self, message: str, plan: "Plan | None" = None) -> None:
        super().__init__(message)
        self.plan = plan


@dataclass
class Run:
    """A job of a workflow that needs to be run."""

    workflow: Workflow
    job_id: str

    def job(self) -> Job | None:
        """The job this run executes."""
        return self.workflow.get_job(self.job_id)

    def __str__(self) -> str:
        job = self.job()
        name = job.name if job is not None else ""
        return name or self.job_id


@dataclass
class Stage:
    """Runs that may execute in parallel."""

    runs: list[Run] = field(default_factory=list)

    def get_job_ids(self) -> list[str]:
        """IDs of the jobs run in this stage."""
        return [run.job_id for run in self.runs]


@dataclass
class Plan:
    """Stages to run one after another."""

    stages: list[Stage] = field(default_factory=list)

    def max_run_name_len(self) -> int:
        """Length of the longest run name in the plan."""
        return max(
            (len(str(run)) for stage in self.stages for run in stage.runs),
            default=0,
        )

    def _merge_stages(self, stages: list[Stage]) -> None:
        count = max(len(self.stages), len(stages))
        merged: list[Stage] = []
        for index in range(count):
            runs: list[Run] = []
            if index < len(self.stages):
                runs.extend(self.stages[index].runs)
            if index < len(stages):
                runs.extend(stages[index].runs)
            merged.append(Stage(runs=runs))
        self.stages = merged


def _list_in_stages(names: list[str], stages: list[Stage]) -> bool:
    planned = {job_id for stage in stages for job_id in stage.get_job_ids()}
    return all(name in planned for name in names)


def create_stages(workflow: Workflow, *args: str) -> list[Stage]:
    """Order the given jobs and everything they need into dependency stages."""
    job_dependencies: dict[str, list[str]] = {}
    job_ids = list(args)
    while job_ids:
        next_ids: list[str] = []
        for job_id in job_ids:
            if job_id in job_dependencies:
                continue
            job = workflow.get_job(job_id)
            if job is not None:
                needs = job.needs()
                job_dependencies[job_id] = needs
                next_ids.extend(needs)
        job_ids = next_ids

    stages: list[Stage] = []
    while job_dependencies:
        stage = Stage()
        for job_id, deps in list(job_dependencies.items()):
            if _list_in_stages(deps, stages):
                stage.runs.append(Run(workflow=workflow, job_id=job_id))
                del job_dependencies[job_id]
        if not stage.runs:
            raise PlanError(
                f"unable to build dependency graph for {workflow.name} ({workflow.file})"
            )
        stages.append(stage)

    if not stages:
        raise PlanError(
            "Could not find any stages to run. Check the job IDs, workflow and "
            "event name used to filter"
        )
    return stages


@dataclass
class WorkflowPlanner:
    """Builds plans from a set of loaded workflows."""

    workflows: list[Workflow] = field(default_factory=list)

    def _plan(self, pairs: Iterator[tuple[Workflow, list[str]]]) -> Plan:
        plan = Plan()
        last_error: PlanError | None = None
        for workflow, job_ids in pairs:
            try:
                stages = create_stages(workflow, *job_ids)
            except PlanError as exc:
                _log.warning("%s", exc)
                last_error = exc
            else:
                plan._merge_stages(stages)
        if last_error is not None:
            raise PlanError(str(last_error), plan=plan) from last_error
        return plan

    def plan_event(self, event_name: str) -> Plan:
        """Plan every job of the workflows triggered by ``event_name``."""
        if not self.workflows:
            _log.debug("no workflows found by planner")
            return Plan()

        def pairs() -> Iterator[tuple[Workflow, list[str]]]:
            for workflow in self.workflows:
                events = workflow.on()
                if not events:
                    _log.debug("no events found for workflow: %s", workflow.file)
                    continue
                for event in events:
                    if event == event_name:
                        yield workflow, workflow.get_job_ids()

        return self._plan(pairs())

    def plan_job(self, job_name: str) -> Plan:
        """Plan the named job, with its dependencies, in every workflow."""
        if not self.workflows:
            _log.debug("no jobs found for workflow: %s", job_name)
        return self._plan((workflow, [job_name]) for workflow in self.workflows)

    def plan_all(self) -> Plan:
        """Plan every job of every workflow."""
        if not self.workflows:
            _log.debug("no workflows found by planner")
            return Plan()
        return self._plan((workflow, workflow.get_job_ids()) for workflow in self.workflows)

    def get_events(self) -> list[str]:
        """Sorted event names of the workflows.

        A workflow sharing any event with one seen earlier adds none of its events.
        """
        events: list[str] = []
        for workflow in self.workflows:
            triggers = workflow.on()
            if not any(event in triggers for event in events):
                events.extend(triggers)
        return sorted(events)


def _walk_files(directory: Path) -> Iterator[Path]:
    for entry in sorted(os.scandir(directory), key=lambda e: e.name):
        if entry.is_dir(follow_symlinks=False):
            yield from _walk_files(Path(entry.path))
        else:
            yield Path(entry.path)


def _workflow_paths(path: Path, no_workflow_recurse: bool) -> list[Path]:
    if not path.is_dir():
        _log.debug("Loading workflow '%s'", path)
        return [path]
    _log.debug("Loading workflows from '%s'", path)
    if no_workflow_recurse:
        return sorted(path.iterdir(), key=lambda p: p.name)
    _log.debug("Loading workflows recursively")
    return list(_walk_files(path))


def _load_workflow(path: Path) -> Workflow:
    name = path.name
    _log.debug("Reading workflow '%s'", path)
    with open(path, encoding="utf-8") as stream:
        try:
            workflow = read_workflow(stream)
        except EOFError as exc:
            raise PlanError(f"unable to read workflow '{name}': file is empty: EOF") from exc
        except (WorkflowError, ValueError) as exc:
            raise PlanError(f"workflow is not valid. '{name}': {exc}") from exc

    workflow.file = name
    if not workflow.name:
        workflow.name = name
    for job_id in workflow.jobs:
        if not _JOB_NAME.fullmatch(job_id):
            raise PlanError(
                f"workflow is not valid. '{workflow.name}': Job name '{job_id}' is invalid. "
                "Names must start with a letter or '_' and contain only alphanumeric "
                "characters, '-', or '_'"
            )
    return workflow


def new_workflow_planner(path: str | os.PathLike[str], no_workflow_recurse: bool) -> WorkflowPlanner:
    """Load one workflow file, or all workflows in a directory (recursively unless told not to)."""
    root = Path(os.path.abspath(path))
    os.stat(root)
    planner = WorkflowPlanner()
    for workflow_path in _workflow_paths(root, no_workflow_recurse):
        if workflow_path.suffix in (".yml", ".yaml"):
            planner.workflows.append(_load_workflow(workflow_path))
    return planner