"""Workflow commands that steps print to their output (``::name args::value``)."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from workflowkit.model.results import StepResult

log = logging.getLogger(__name__)

_COMMAND_GA = re.compile(r"^::([^ ]+)( (.+))?::([^\r\n]*)[\r\n]+\Z")
_COMMAND_ADO = re.compile(r"^##\[([^ ]+)( (.+))?]([^\r\n]*)[\r\n]+\Z")

_DATA_ESCAPES = {"%25": "%", "%0D": "\r", "%0A": "\n"}
_PROPERTY_ESCAPES = {**_DATA_ESCAPES, "%3A": ":", "%2C": ","}
_DATA_RE = re.compile("|".join(map(re.escape, _DATA_ESCAPES)))
_PROPERTY_RE = re.compile("|".join(map(re.escape, _PROPERTY_ESCAPES)))


@dataclass
class ActionCommand:
    """A command parsed from one line of step output."""

    command: str
    kv_pairs: dict[str, str]
    arg: str


def parse_key_value_pairs(kv_pairs: str, separator: str) -> dict[str, str]:
    """Parse ``key=value`` pairs; entries without exactly one '=' are dropped."""
    result = {}
    for pair in kv_pairs.split(separator):
        parts = pair.split("=")
        if len(parts) == 2:
            result[parts[0]] = parts[1]
    return result


def parse_raw_action_command(line: str) -> ActionCommand | None:
    """Parse a ``::cmd k=v::arg`` or ``##[cmd k=v]arg`` line, or return None."""
    match = _COMMAND_GA.match(line)
    separator = ","
    if match is None:
        match = _COMMAND_ADO.match(line)
        separator = ";"
    if match is None:
        return None
    return ActionCommand(
        command=match.group(1),
        kv_pairs=parse_key_value_pairs(match.group(3) or "", separator),
        arg=match.group(4),
    )


def unescape_command_data(arg: str) -> str:
    """Undo the percent escapes used in command values."""
    return _DATA_RE.sub(lambda m: _DATA_ESCAPES[m.group(0)], arg)


def unescape_command_property(arg: str) -> str:
    """Undo the percent escapes used in command properties."""
    return _PROPERTY_RE.sub(lambda m: _PROPERTY_ESCAPES[m.group(0)], arg)


def _merge_case_sensitive(target: dict[str, str], new: dict[str, str]) -> None:
    target.update(new)


def _merge_case_insensitive(target: dict[str, str], new: dict[str, str]) -> None:
    by_lower = {key.lower(): key for key in target}
    for key, value in new.items():
        existing = by_lower.setdefault(key.lower(), key)
        target[existing] = value


@dataclass
class CommandProcessor:
    """Applies workflow commands found in step output to the run state."""

    env: dict[str, str] = field(default_factory=dict)
    global_env: dict[str, str] = field(default_factory=dict)
    step_results: dict[str, StepResult] = field(default_factory=dict)
    current_step: str = ""
    output_mappings: dict[tuple[str, str], tuple[str, str]] = field(default_factory=dict)
    extra_path: list[str] = field(default_factory=list)
    masks: list[str] = field(default_factory=list)
    intra_action_state: dict[str, dict[str, str]] = field(default_factory=dict)
    env_case_insensitive: bool = False
    _resume_command: str = field(default="", init=False, repr=False)

    def handle_line(self, line: str) -> bool:
        """Process one output line; return True when it is not a command and should be shown."""
        parsed = parse_raw_action_command(line)
        if parsed is None:
            return True

        command = parsed.command
        if self._resume_command and command != self._resume_command:
            log.info("  \u2699  %s", line)
            return False

        arg = unescape_command_data(parsed.arg)
        kv_pairs = {k: unescape_command_property(v) for k, v in parsed.kv_pairs.items()}

        if command == "set-env":
            self.set_env(kv_pairs, arg)
        elif command == "set-output":
            self.set_output(kv_pairs, arg)
        elif command == "add-path":
            self.add_path(arg)
        elif command == "debug":
            log.info("  \U0001F4AC  %s", line)
        elif command == "warning":
            log.info("  \U0001F6A7  %s", line)
        elif command == "error":
            log.info("  \u2757  %s", line)
        elif command == "add-mask":
            self.add_mask(arg)
            log.info("  \u2699  %s", "***")
        elif command == "stop-commands":
            self._resume_command = arg
            log.info("  \u2699  %s", line)
        elif command == self._resume_command:
            self._resume_command = ""
            log.info("  \u2699  %s", line)
        elif command == "save-state":
            log.info("  \U0001f4be  %s", line)
            self.save_state(kv_pairs, arg)
        elif command == "add-matcher":
            log.info("  \u2753 add-matcher %s", arg)
        else:
            log.info("  \u2753  %s", line)
        return False

    def set_env(self, kv_pairs: dict[str, str], arg: str) -> None:
        """Set an environment variable for this and later steps."""
        name = kv_pairs.get("name", "")
        log.info("  \u2699  ::set-env:: %s=%s", name, arg)
        merge = _merge_case_insensitive if self.env_case_insensitive else _merge_case_sensitive
        new_env = {name: arg}
        merge(self.env, new_env)
        merge(self.global_env, new_env)

    def set_output(self, kv_pairs: dict[str, str], arg: str) -> None:
        """Record an output of the current step, following any output mapping."""
        step_id = self.current_step
        output_name = kv_pairs.get("name", "")
        mapped = self.output_mappings.get((step_id, output_name))
        if mapped is not None:
            step_id, output_name = mapped

        result = self.step_results.get(step_id)
        if result is None:
            log.info("  \u2757  no outputs used step '%s'", step_id)
            return
        log.info("  \u2699  ::set-output:: %s=%s", output_name, arg)
        result.outputs[output_name] = arg

    def add_path(self, arg: str) -> None:
        """Put ``arg`` first on the extra path, without duplicates."""
        log.info("  \u2699  ::add-path:: %s", arg)
        self.extra_path = [arg, *(p for p in self.extra_path if p != arg)]

    def add_mask(self, value: str) -> None:
        """Register a value to be masked in logs."""
        self.masks.append(value)

    def save_state(self, kv_pairs: dict[str, str], arg: str) -> None:
        """Save a named state value for the current step."""
        if not self.current_step:
            return
        state = self.intra_action_state.setdefault(self.current_step, {})
        state[kv_pairs.get("name", "")] = arg