"""Action metadata read from ``action.yml`` files."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import IO, Any

import yaml

from workflowkit.model.workflow import Step, WorkflowDecodeError


class ActionDecodeError(ValueError):
    """An action metadata file could not be decoded."""


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        raise ActionDecodeError(f"cannot decode {value!r} into a string")
    return str(value)


def _mapping(value: Any) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ActionDecodeError(f"cannot decode {value!r} into a mapping")
    return value


def _flag(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    raise ActionDecodeError(f"cannot decode {value!r} into a bool")


class ActionRunsUsing(str, Enum):
    """Runtime an action runs with."""

    NODE12 = "node12"
    NODE16 = "node16"
    DOCKER = "docker"
    COMPOSITE = "composite"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Any) -> ActionRunsUsing:
        """Return the runtime named by ``value``, ignoring case."""
        lowered = _text(value).lower()
        try:
            return cls(lowered)
        except ValueError:
            raise ActionDecodeError(
                "The runs.using key in action.yml must be one of: "
                f"[composite docker node12 node16], got {lowered}"
            ) from None


@dataclass
class ActionRuns:
    """The ``runs`` section of an action."""

    using: ActionRunsUsing | None = None
    env: dict[str, str] = field(default_factory=dict)
    main: str = ""
    pre: str = ""
    pre_if: str = ""
    post: str = ""
    post_if: str = ""
    image: str = ""
    entrypoint: str = ""
    args: list[str] = field(default_factory=list)
    steps: list[Step] = field(default_factory=list)

    @classmethod
    def from_yaml(cls, data: Any) -> ActionRuns:
        data = _mapping(data)
        using = data.get("using")
        args = data.get("args")
        if args is not None and not isinstance(args, list):
            raise ActionDecodeError(f"cannot decode {args!r} into a list of strings")
        steps = data.get("steps")
        if steps is not None and not isinstance(steps, list):
            raise ActionDecodeError(f"cannot decode {steps!r} into a list of steps")
        return cls(
            using=ActionRunsUsing.parse(using) if using is not None else None,
            env={str(k): _text(v) for k, v in _mapping(data.get("env")).items()},
            main=_text(data.get("main")),
            pre=_text(data.get("pre")),
            pre_if=_text(data.get("pre-if")),
            post=_text(data.get("post")),
            post_if=_text(data.get("post-if")),
            image=_text(data.get("image")),
            entrypoint=_text(data.get("entrypoint")),
            args=[_text(a) for a in args or []],
            steps=[Step.from_yaml(s) for s in steps or []],
        )


@dataclass
class Input:
    """An input parameter of an action."""

    description: str = ""
    required: bool = False
    default: str = ""

    @classmethod
    def from_yaml(cls, data: Any) -> Input:
        data = _mapping(data)
        return cls(
            description=_text(data.get("description")),
            required=_flag(data.get("required")),
            default=_text(data.get("default")),
        )


@dataclass
class Output:
    """An output parameter of an action."""

    description: str = ""
    value: str = ""

    @classmethod
    def from_yaml(cls, data: Any) -> Output:
        data = _mapping(data)
        return cls(description=_text(data.get("description")), value=_text(data.get("value")))


@dataclass
class Branding:
    """Marketplace branding of an action."""

    color: str = ""
    icon: str = ""


@dataclass
class Action:
    """Metadata of an action: its inputs, outputs and entry point."""

    name: str = ""
    author: str = ""
    description: str = ""
    inputs: dict[str, Input] = field(default_factory=dict)
    outputs: dict[str, Output] = field(default_factory=dict)
    runs: ActionRuns = field(default_factory=ActionRuns)
    branding: Branding = field(default_factory=Branding)


def read_action(stream: IO[str] | IO[bytes] | str) -> Action:
    """Read an action from YAML; raises EOFError for an empty document."""
    data = yaml.safe_load(stream)
    if data is None:
        raise EOFError("EOF")
    if not isinstance(data, dict):
        raise ActionDecodeError(f"cannot decode {data!r} into an action")
    try:
        branding = _mapping(data.get("branding"))
        action = Action(
            name=_text(data.get("name")),
            author=_text(data.get("author")),
            description=_text(data.get("description")),
            inputs={str(k): Input.from_yaml(v) for k, v in _mapping(data.get("inputs")).items()},
            outputs={
                str(k): Output.from_yaml(v) for k, v in _mapping(data.get("outputs")).items()
            },
            runs=ActionRuns.from_yaml(data.get("runs")),
            branding=Branding(
                color=_text(branding.get("color")), icon=_text(branding.get("icon"))
            ),
        )
    except WorkflowDecodeError as err:
        raise ActionDecodeError(str(err)) from err

    if not action.runs.pre_if:
        action.runs.pre_if = "always()"
    if not action.runs.post_if:
        action.runs.post_if = "always()"
    return action