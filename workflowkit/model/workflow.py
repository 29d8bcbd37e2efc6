"""Workflow, job and step definitions read from workflow YAML files."""

from __future__ import annotations

import itertools
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import IO, Any

import yaml

log = logging.getLogger(__name__)

_BOOL_TAG = "tag:yaml.org,2002:bool"


class _Loader(yaml.SafeLoader):
    """Safe loader with YAML 1.2 booleans, so that ``on`` stays a string key."""


_Loader.yaml_implicit_resolvers = {
    key: [(tag, rx) for tag, rx in resolvers if tag != _BOOL_TAG]
    for key, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
_Loader.add_implicit_resolver(
    _BOOL_TAG,
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)

_INPUT_KEY_RE = re.compile(r"[^A-Z0-9-]")


class WorkflowDecodeError(ValueError):
    """A workflow value could not be decoded into the expected shape."""


def _is_scalar(value: Any) -> bool:
    return value is not None and not isinstance(value, (dict, list))


def _as_str(value: Any, what: str = "string") -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        raise WorkflowDecodeError(f"cannot decode {value!r} into {what}")
    return str(value)


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise WorkflowDecodeError(f"cannot decode {value!r} into a list of strings")
    return [_as_str(v) for v in value]


def _as_str_map(value: Any) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise WorkflowDecodeError(f"cannot decode {value!r} into a string map")
    return {str(k): _as_str(v) for k, v in value.items()}


def _as_map(value: Any) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise WorkflowDecodeError(f"cannot decode {value!r} into a mapping")
    return value


def _as_bool(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    raise WorkflowDecodeError(f"cannot decode {value!r} into a bool")


def _environment(raw: Any) -> dict[str, str]:
    if isinstance(raw, dict):
        return _as_str_map(raw)
    return {}


def _parse_bool(text: str) -> bool:
    if text in ("1", "t", "T", "TRUE", "true", "True"):
        return True
    if text in ("0", "f", "F", "FALSE", "false", "False"):
        return False
    raise ValueError(f"invalid syntax: {text!r}")


@dataclass
class RunDefaults:
    """Defaults for all run steps."""

    shell: str = ""
    working_directory: str = ""

    @classmethod
    def from_yaml(cls, data: Any) -> RunDefaults:
        data = _as_map(data)
        return cls(
            shell=_as_str(data.get("shell")),
            working_directory=_as_str(data.get("working-directory")),
        )


@dataclass
class Defaults:
    """Default settings for a workflow or job."""

    run: RunDefaults = field(default_factory=RunDefaults)

    @classmethod
    def from_yaml(cls, data: Any) -> Defaults:
        return cls(run=RunDefaults.from_yaml(_as_map(data).get("run")))


@dataclass
class ContainerSpec:
    """Specification of a job or service container."""

    image: str = ""
    env: dict[str, str] = field(default_factory=dict)
    ports: list[str] = field(default_factory=list)
    volumes: list[str] = field(default_factory=list)
    options: str = ""
    credentials: dict[str, str] = field(default_factory=dict)
    entrypoint: str = ""
    args: str = ""
    name: str = ""
    reuse: bool = False

    @classmethod
    def from_yaml(cls, data: Any) -> ContainerSpec:
        data = _as_map(data)
        return cls(
            image=_as_str(data.get("image")),
            env=_as_str_map(data.get("env")),
            ports=_as_str_list(data.get("ports")),
            volumes=_as_str_list(data.get("volumes")),
            options=_as_str(data.get("options")),
            credentials=_as_str_map(data.get("credentials")),
        )


@dataclass
class Strategy:
    """Matrix strategy of a job."""

    fail_fast: bool = False
    max_parallel: int = 0
    fail_fast_string: str = ""
    max_parallel_string: str = ""
    raw_matrix: Any = None

    @classmethod
    def from_yaml(cls, data: Any) -> Strategy:
        data = _as_map(data)
        return cls(
            fail_fast_string=_as_str(data.get("fail-fast")),
            max_parallel_string=_as_str(data.get("max-parallel")),
            raw_matrix=data.get("matrix"),
        )

    def get_max_parallel(self) -> int:
        """Return ``max-parallel``, defaulting to 4."""
        if not self.max_parallel_string:
            return 4
        try:
            return int(self.max_parallel_string)
        except ValueError as err:
            log.error("Failed to parse 'max-parallel' option: %s", err)
            return 0

    def get_fail_fast(self) -> bool:
        """Return ``fail-fast``, defaulting to true."""
        if not self.fail_fast_string:
            return True
        try:
            return _parse_bool(self.fail_fast_string)
        except ValueError as err:
            log.error("Failed to parse 'fail-fast' option: %s", err)
            return False


class StepType(Enum):
    """Kind of step, decided by its ``run`` and ``uses`` keys."""

    RUN = 0
    USES_DOCKER_URL = 1
    USES_ACTION_LOCAL = 2
    USES_ACTION_REMOTE = 3
    REUSABLE_WORKFLOW_LOCAL = 4
    REUSABLE_WORKFLOW_REMOTE = 5
    INVALID = 6

    def __str__(self) -> str:
        return {
            StepType.INVALID: "invalid",
            StepType.RUN: "run",
            StepType.USES_ACTION_LOCAL: "local-action",
            StepType.USES_ACTION_REMOTE: "remote-action",
            StepType.USES_DOCKER_URL: "docker",
            StepType.REUSABLE_WORKFLOW_LOCAL: "local-reusable-workflow",
            StepType.REUSABLE_WORKFLOW_REMOTE: "remote-reusable-workflow",
        }[self]


class JobType(Enum):
    """Kind of job, decided by its ``uses`` key."""

    DEFAULT = 0
    REUSABLE_WORKFLOW_LOCAL = 1
    REUSABLE_WORKFLOW_REMOTE = 2

    def __str__(self) -> str:
        return {
            JobType.DEFAULT: "default",
            JobType.REUSABLE_WORKFLOW_LOCAL: "local-reusable-workflow",
            JobType.REUSABLE_WORKFLOW_REMOTE: "remote-reusable-workflow",
        }[self]


def _is_local_workflow(uses: str) -> bool:
    return uses.startswith("./.github/workflows") and uses.endswith((".yml", ".yaml"))


def _is_remote_workflow(uses: str) -> bool:
    return (
        not uses.startswith("./")
        and ".github/workflows" in uses
        and (".yml@" in uses or ".yaml@" in uses)
    )


@dataclass
class Step:
    """One step of a job."""

    id: str = ""
    if_condition: str = ""
    name: str = ""
    uses: str = ""
    run: str = ""
    working_directory: str = ""
    shell: str = ""
    env: Any = None
    with_: dict[str, str] = field(default_factory=dict)
    raw_continue_on_error: str = ""
    timeout_minutes: str = ""

    @classmethod
    def from_yaml(cls, data: Any) -> Step:
        data = _as_map(data)
        return cls(
            id=_as_str(data.get("id")),
            if_condition=_as_str(data.get("if")),
            name=_as_str(data.get("name")),
            uses=_as_str(data.get("uses")),
            run=_as_str(data.get("run")),
            working_directory=_as_str(data.get("working-directory")),
            shell=_as_str(data.get("shell")),
            env=data.get("env"),
            with_=_as_str_map(data.get("with")),
            raw_continue_on_error=_as_str(data.get("continue-on-error")),
            timeout_minutes=_as_str(data.get("timeout-minutes")),
        )

    def __str__(self) -> str:
        return self.name or self.uses or self.run or self.id

    def environment(self) -> dict[str, str]:
        """Return the step's ``env`` as a string map."""
        return _environment(self.env)

    def get_env(self) -> dict[str, str]:
        """Return the step environment including ``INPUT_*`` entries for ``with``."""
        env = self.environment()
        for key, value in self.with_.items():
            env_key = _INPUT_KEY_RE.sub("_", key.upper())
            env[f"INPUT_{env_key.upper()}"] = value
        return env

    def shell_command(self) -> str:
        """Return the command template of the step's shell."""
        commands = {
            "": "bash --noprofile --norc -e -o pipefail {0}",
            "bash": "bash --noprofile --norc -e -o pipefail {0}",
            "pwsh": "pwsh -command . '{0}'",
            "python": "python {0}",
            "sh": "sh -e {0}",
            "cmd": '%ComSpec% /D /E:ON /V:OFF /S /C "CALL "{0}""',
            "powershell": "powershell -command . '{0}'",
        }
        return commands.get(self.shell, self.shell)

    def type(self) -> StepType:
        """Return the kind of this step."""
        if not self.run and not self.uses:
            return StepType.INVALID
        if self.run:
            return StepType.INVALID if self.uses else StepType.RUN
        if self.uses.startswith("docker://"):
            return StepType.USES_DOCKER_URL
        if _is_local_workflow(self.uses):
            return StepType.REUSABLE_WORKFLOW_LOCAL
        if _is_remote_workflow(self.uses):
            return StepType.REUSABLE_WORKFLOW_REMOTE
        if self.uses.startswith("./"):
            return StepType.USES_ACTION_LOCAL
        return StepType.USES_ACTION_REMOTE


def _common_keys_match(a: dict, b: dict) -> bool:
    return all(b[k] == v for k, v in a.items() if k in b)


def _common_keys_match_in(a: dict, b: dict, keys: dict) -> bool:
    return all(b[k] == v for k, v in a.items() if k in keys and k in b)


@dataclass
class Job:
    """One job of a workflow."""

    name: str = ""
    raw_needs: Any = None
    raw_runs_on: Any = None
    env: Any = None
    if_condition: str = ""
    steps: list[Step] = field(default_factory=list)
    timeout_minutes: str = ""
    services: dict[str, ContainerSpec] = field(default_factory=dict)
    strategy: Strategy | None = None
    raw_container: Any = None
    defaults: Defaults = field(default_factory=Defaults)
    outputs: dict[str, str] = field(default_factory=dict)
    uses: str = ""
    with_: dict[str, Any] = field(default_factory=dict)
    raw_secrets: Any = None
    result: str = ""

    @classmethod
    def from_yaml(cls, data: Any) -> Job:
        data = _as_map(data)
        steps = data.get("steps")
        if steps is not None and not isinstance(steps, list):
            raise WorkflowDecodeError(f"cannot decode {steps!r} into a list of steps")
        strategy = data.get("strategy")
        return cls(
            name=_as_str(data.get("name")),
            raw_needs=data.get("needs"),
            raw_runs_on=data.get("runs-on"),
            env=data.get("env"),
            if_condition=_as_str(data.get("if")),
            steps=[Step.from_yaml(s) for s in steps or []],
            timeout_minutes=_as_str(data.get("timeout-minutes")),
            services={
                str(k): ContainerSpec.from_yaml(v)
                for k, v in _as_map(data.get("services")).items()
            },
            strategy=Strategy.from_yaml(strategy) if strategy is not None else None,
            raw_container=data.get("container"),
            defaults=Defaults.from_yaml(data.get("defaults")),
            outputs=_as_str_map(data.get("outputs")),
            uses=_as_str(data.get("uses")),
            with_=dict(_as_map(data.get("with"))),
            raw_secrets=data.get("secrets"),
        )

    def inherit_secrets(self) -> bool:
        """Return whether the job passes ``secrets: inherit``."""
        return _is_scalar(self.raw_secrets) and _as_str(self.raw_secrets) == "inherit"

    def secrets(self) -> dict[str, str] | None:
        """Return the explicitly mapped secrets, if any."""
        if not isinstance(self.raw_secrets, dict):
            return None
        return _as_str_map(self.raw_secrets)

    def container(self) -> ContainerSpec | None:
        """Return the job container, from a bare image name or a mapping."""
        if _is_scalar(self.raw_container):
            return ContainerSpec(image=_as_str(self.raw_container))
        if isinstance(self.raw_container, dict):
            return ContainerSpec.from_yaml(self.raw_container)
        return None

    def needs(self) -> list[str]:
        """Return the ids of the jobs this job depends on."""
        if _is_scalar(self.raw_needs):
            return [_as_str(self.raw_needs)]
        if isinstance(self.raw_needs, list):
            return _as_str_list(self.raw_needs)
        return []

    def runs_on(self) -> list[str]:
        """Return the runner labels of the job."""
        if _is_scalar(self.raw_runs_on):
            return [_as_str(self.raw_runs_on)]
        if isinstance(self.raw_runs_on, list):
            return _as_str_list(self.raw_runs_on)
        return []

    def environment(self) -> dict[str, str]:
        """Return the job's ``env`` as a string map."""
        return _environment(self.env)

    def matrix(self) -> dict[str, list[Any]] | None:
        """Return the strategy matrix as lists of values per key."""
        if self.strategy is None or not isinstance(self.strategy.raw_matrix, dict):
            return None
        result: dict[str, list[Any]] = {}
        for key, values in self.strategy.raw_matrix.items():
            if values is None:
                values = []
            if not isinstance(values, list):
                raise WorkflowDecodeError(
                    f"cannot decode matrix value {values!r} for {key!r} into a list"
                )
            result[str(key)] = list(values)
        return result

    def get_matrixes(self) -> list[dict[str, Any]]:
        """Return every matrix combination after applying include and exclude."""
        if self.strategy is None:
            return [{}]
        self.strategy.fail_fast = self.strategy.get_fail_fast()
        self.strategy.max_parallel = self.strategy.get_max_parallel()

        m = self.matrix()
        if m is None:
            return [{}]

        includes: list[dict] = []
        extra_includes: list[dict] = []
        for value in m.pop("include", []):
            for item in value if isinstance(value, list) else [value]:
                if not isinstance(item, dict):
                    raise WorkflowDecodeError(f"matrix include {item!r} is not a mapping")
                if any(k in m for k in item):
                    includes.append(item)
                else:
                    extra_includes.append(item)

        excludes: list[dict] = []
        for exclude in m.pop("exclude", []):
            if not isinstance(exclude, dict):
                raise WorkflowDecodeError(f"matrix exclude {exclude!r} is not a mapping")
            for key in exclude:
                if key not in m:
                    raise WorkflowDecodeError(
                        "the workflow is not valid. Matrix exclude key "
                        f'"{key}" does not match any key within the matrix'
                    )
            excludes.append(exclude)

        product: list[dict[str, Any]] = []
        if m:
            keys = list(m)
            product = [dict(zip(keys, combo)) for combo in itertools.product(*m.values())]

        matrixes = [
            matrix
            for matrix in product
            if not any(_common_keys_match(matrix, ex) for ex in excludes)
        ]
        for include in includes:
            matched = False
            for matrix in matrixes:
                if _common_keys_match_in(matrix, include, m):
                    matched = True
                    matrix.update(include)
            if not matched:
                extra_includes.append(include)
        matrixes.extend(dict(include) for include in extra_includes)
        return matrixes or [{}]

    def type(self) -> JobType:
        """Return the kind of this job."""
        if _is_local_workflow(self.uses):
            return JobType.REUSABLE_WORKFLOW_LOCAL
        if _is_remote_workflow(self.uses):
            return JobType.REUSABLE_WORKFLOW_REMOTE
        return JobType.DEFAULT


@dataclass
class WorkflowDispatchInput:
    """An input of a ``workflow_dispatch`` trigger."""

    description: str = ""
    required: bool = False
    default: str = ""
    type: str = ""
    options: list[str] = field(default_factory=list)


@dataclass
class WorkflowDispatch:
    """Configuration of a ``workflow_dispatch`` trigger."""

    inputs: dict[str, WorkflowDispatchInput] = field(default_factory=dict)


@dataclass
class WorkflowCallInput:
    """An input of a ``workflow_call`` trigger."""

    description: str = ""
    required: bool = False
    default: str = ""
    type: str = ""


@dataclass
class WorkflowCallOutput:
    """An output of a ``workflow_call`` trigger."""

    description: str = ""
    value: str = ""


@dataclass
class WorkflowCall:
    """Configuration of a ``workflow_call`` trigger."""

    inputs: dict[str, WorkflowCallInput] = field(default_factory=dict)
    outputs: dict[str, WorkflowCallOutput] = field(default_factory=dict)


@dataclass
class WorkflowCallResult:
    """Outputs of a called workflow."""

    outputs: dict[str, str] = field(default_factory=dict)


@dataclass
class Workflow:
    """A workflow file."""

    file: str = ""
    name: str = ""
    raw_on: Any = None
    env: dict[str, str] = field(default_factory=dict)
    jobs: dict[str, Job] = field(default_factory=dict)
    defaults: Defaults = field(default_factory=Defaults)

    def on(self) -> list[str]:
        """Return the names of the events that trigger the workflow."""
        if _is_scalar(self.raw_on):
            return [_as_str(self.raw_on)]
        if isinstance(self.raw_on, list):
            return _as_str_list(self.raw_on)
        if isinstance(self.raw_on, dict):
            return [str(k) for k in self.raw_on]
        return []

    def on_event(self, event: str) -> Any:
        """Return the configuration given for ``event``, if any."""
        if isinstance(self.raw_on, dict):
            return self.raw_on.get(event)
        return None

    def workflow_dispatch_config(self) -> WorkflowDispatch | None:
        """Return the ``workflow_dispatch`` configuration."""
        if not isinstance(self.raw_on, dict):
            return None
        data = _as_map(self.raw_on.get("workflow_dispatch"))
        inputs = {}
        for key, value in _as_map(data.get("inputs")).items():
            value = _as_map(value)
            inputs[str(key)] = WorkflowDispatchInput(
                description=_as_str(value.get("description")),
                required=_as_bool(value.get("required")),
                default=_as_str(value.get("default")),
                type=_as_str(value.get("type")),
                options=_as_str_list(value.get("options")),
            )
        return WorkflowDispatch(inputs=inputs)

    def workflow_call_config(self) -> WorkflowCall:
        """Return the ``workflow_call`` configuration, empty when not a mapping."""
        if not isinstance(self.raw_on, dict):
            return WorkflowCall()
        data = _as_map(self.raw_on.get("workflow_call"))
        inputs = {}
        for key, value in _as_map(data.get("inputs")).items():
            value = _as_map(value)
            inputs[str(key)] = WorkflowCallInput(
                description=_as_str(value.get("description")),
                required=_as_bool(value.get("required")),
                default=_as_str(value.get("default")),
                type=_as_str(value.get("type")),
            )
        outputs = {}
        for key, value in _as_map(data.get("outputs")).items():
            value = _as_map(value)
            outputs[str(key)] = WorkflowCallOutput(
                description=_as_str(value.get("description")),
                value=_as_str(value.get("value")),
            )
        return WorkflowCall(inputs=inputs, outputs=outputs)

    def get_job(self, job_id: str) -> Job | None:
        """Return the job with ``job_id``, filling in its name and condition defaults."""
        job = self.jobs.get(job_id)
        if job is None:
            return None
        if not job.name:
            job.name = job_id
        if not job.if_condition:
            job.if_condition = "success()"
        return job

    def get_job_ids(self) -> list[str]:
        """Return the ids of all jobs."""
        return list(self.jobs)


def read_workflow(stream: IO[str] | IO[bytes] | str) -> Workflow:
    """Read a workflow from a YAML stream; raises EOFError for an empty document."""
    data = yaml.load(stream, Loader=_Loader)
    if data is None:
        raise EOFError("EOF")
    if not isinstance(data, dict):
        raise WorkflowDecodeError(f"cannot decode {data!r} into a workflow")
    return Workflow(
        name=_as_str(data.get("name")),
        raw_on=data.get("on"),
        env=_as_str_map(data.get("env")),
        jobs={str(k): Job.from_yaml(v) for k, v in _as_map(data.get("jobs")).items()},
        defaults=Defaults.from_yaml(data.get("defaults")),
    )