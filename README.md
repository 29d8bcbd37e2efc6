# workflowkit

Building blocks for tools that work with CI workflow files:

- a typed model of workflows, jobs, steps, actions, step results and the
  `github` context (`workflowkit.model`);
- a handler for the workflow commands that steps print to their output
  (`workflowkit.runner.commands`);
- an executable lookup that follows Unix, Windows and Plan 9 search rules
  (`workflowkit.lookpath`);
- a parser for `${{ ... }}` expressions, the value rules they follow and
  their built-in functions (`workflowkit.exprparser`).

## Installation

```
pip install workflowkit
```

Requires Python 3.10 or newer. The only runtime dependency is PyYAML.

## Reading a workflow

```python
from workflowkit.model.workflow import read_workflow

with open(".github/workflows/ci.yml") as stream:
    workflow = read_workflow(stream)

print(workflow.on())              # e.g. ["push", "pull_request"]
job = workflow.get_job("build")   # None if there is no such job
print(job.needs(), job.runs_on())
for matrix in job.get_matrixes():
    print(matrix)
```

`read_workflow` raises `EOFError` for an empty document and
`WorkflowDecodeError` when a value has the wrong shape. `on` is read as a
plain key (YAML 1.2 booleans), so `on:` is not turned into `True`.

`Workflow.get_job` fills in a missing job name with the job id and a
missing condition with `success()`. `Job.get_matrixes` expands the
strategy matrix and applies `include` and `exclude`. An `exclude` key
that is not in the matrix raises `WorkflowDecodeError`.
`Step.type()` returns a `StepType` and `Job.type()` returns a `JobType`.
`Step.shell_command()` gives the command template for the step's shell.
`Step.get_env()` adds an `INPUT_<NAME>` entry for every `with` value.

Other helpers on `Workflow` are `on_event`, `workflow_dispatch_config`,
`workflow_call_config` and `get_job_ids`. On `Job` they are `secrets`,
`inherit_secrets`, `container`, `environment` and `matrix`.

## Reading actions

```python
from workflowkit.model.action import read_action

with open("action.yml") as stream:
    action = read_action(stream)
print(action.runs.using, action.runs.main)
```

`runs.using` must be one of `node12`, `node16`, `docker` or `composite`.
Case does not matter. Any other value raises `ActionDecodeError`. When
`pre-if` and `post-if` are not set, both default to `always()`.

## Step results and the github context

`workflowkit.model.results` provides `StepStatus`, `StepResult` and
`JobContext`. `parse_step_status("failure")` returns
`StepStatus.FAILURE`.

`workflowkit.model.github_context.GithubContext` works out `ref`, `sha`
and related fields from the event payload. Git lookups are passed in as
callables:

```python
from workflowkit.model.github_context import GithubContext

ghc = GithubContext(event_name="push", event={"ref": "refs/heads/main"})
ghc.set_ref("main", ".", lambda repo_path: "refs/heads/master")
ghc.set_ref_type_and_name()
print(ghc.ref, ghc.ref_type, ghc.ref_name)   # refs/heads/main branch main
```

If a lookup raises, a warning is logged and the field is left as it was.

## Workflow commands

```python
from workflowkit.runner.commands import CommandProcessor

processor = CommandProcessor()
processor.handle_line("::set-env name=FOO::bar\n")   # returns False: it was a command
print(processor.env)   # {'FOO': 'bar'}
```

`handle_line` understands both `::name k=v::value` and `##[name k=v]value`
lines. It handles these commands:

- `set-env`, `set-output`, `add-path`, `add-mask`, `save-state`
- `stop-commands` and the token that resumes commands

For a line that is not a command it returns `True`.
`parse_raw_action_command`, `parse_key_value_pairs`,
`unescape_command_data` and `unescape_command_property` are available on
their own.

## Finding executables

```python
import os
from workflowkit.lookpath import look_path

print(look_path("git", os.environ.get))
```

`look_path` uses the Windows rules on Windows and the Unix rules
elsewhere. `look_path_unix`, `look_path_windows` and `look_path_plan9`
can also be called directly. If nothing matches,
`ExecutableNotFoundError` is raised.

## Expressions

`workflowkit.exprparser.parser` turns expression text into a tree of
node dataclasses. Parsing stops at `}}`.

```python
from workflowkit.exprparser.parser import parse_expression, walk, FuncCallNode

node = parse_expression("success() && github.event_name == 'push'")
print([n.callee for n in walk(node) if isinstance(n, FuncCallNode)])   # ['success']
```

Malformed input raises `ExprSyntaxError`, a subclass of `ExpressionError`.

`workflowkit.exprparser.values` holds the value rules:

- `is_truthy`
- `coerce_to_string` and `coerce_to_number`
- `compare_values`, which compares strings without regard to case and
  coerces mixed types to numbers. For example,
  `compare_values("3", 3, CompareKind.EQ)` is `True`.

`workflowkit.exprparser.functions` implements the built-in functions:

- `contains`, `starts_with`, `ends_with`
- `format_string`, for example `format_string("{0}-{1}", "value", 42)`
  gives `'value-42'`
- `join`
- `to_json`
- `from_json`, which returns every number as a float
- `hash_files(working_dir, *patterns)`, which returns the SHA-256 of the
  matching files, or `""` if none match

## What this package does not do

- It does not run workflows, jobs, steps or containers.
- It does not order jobs into stages by their `needs`.
- It has no evaluator that resolves context names such as `github`,
  `env` or `steps` inside an expression tree.
- It has no status functions (`success()`, `failure()`, `always()`,
  `cancelled()`). Those names are parsed as function calls, and the
  caller decides what they mean.
- It has no command-line program.