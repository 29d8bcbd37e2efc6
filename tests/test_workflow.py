import io

import pytest

from workflowkit.model.workflow import (
    JobType,
    Step,
    StepType,
    Strategy,
    WorkflowDecodeError,
    read_workflow,
)

SAMPLE = """
name: sample
on:
  push:
  workflow_dispatch:
    inputs:
      level:
        description: lvl
        required: true
        default: warn
        options: [warn, info]
jobs:
  build:
    runs-on: ubuntu-latest
    env:
      A: "1"
    container: node:16
    secrets: inherit
    steps:
      - run: echo hi
        with:
          my-input: x
  test:
    needs: build
    runs-on: [a, b]
    container:
      image: alpine
      ports: ["80"]
    secrets:
      tok: value
"""


def load(text):
    return read_workflow(io.StringIO(text))


def test_read_sample():
    wf = load(SAMPLE)
    assert wf.name == "sample"
    assert sorted(wf.on()) == ["push", "workflow_dispatch"]
    assert wf.get_job_ids() == ["build", "test"]


def test_on_scalar_and_list():
    assert load("on: push\njobs: {}\n").on() == ["push"]
    assert load("on: [push, pull_request]\n").on() == ["push", "pull_request"]


def test_empty_document_raises_eof():
    with pytest.raises(EOFError):
        load("")


def test_get_job_defaults():
    job = load(SAMPLE).get_job("build")
    assert job.name == "build"
    assert job.if_condition == "success()"
    assert load(SAMPLE).get_job("missing") is None


def test_job_fields():
    wf = load(SAMPLE)
    build, test = wf.get_job("build"), wf.get_job("test")
    assert build.needs() == []
    assert test.needs() == ["build"]
    assert build.runs_on() == ["ubuntu-latest"]
    assert test.runs_on() == ["a", "b"]
    assert build.environment() == {"A": "1"}
    assert build.container().image == "node:16"
    assert test.container().ports == ["80"]
    assert build.inherit_secrets() is True
    assert test.inherit_secrets() is False
    assert test.secrets() == {"tok": "value"}
    assert build.secrets() is None


def test_dispatch_config():
    cfg = load(SAMPLE).workflow_dispatch_config()
    level = cfg.inputs["level"]
    assert level.required is True
    assert level.options == ["warn", "info"]
    assert load("on: push\n").workflow_dispatch_config() is None
    assert load("on: push\n").workflow_call_config().inputs == {}


def test_step_env_from_with():
    step = load(SAMPLE).get_job("build").steps[0]
    assert step.get_env() == {"INPUT_MY-INPUT": "x"}


def matrix_job(matrix_yaml):
    return load("on: push\njobs:\n  j:\n    strategy:\n      matrix:\n" + matrix_yaml).get_job("j")


def test_matrix_product_and_exclude():
    job = matrix_job("        os: [a, b]\n        v: [1, 2]\n        exclude:\n          - os: a\n            v: 1\n")
    result = job.get_matrixes()
    assert len(result) == 3
    assert {"os": "a", "v": 1} not in result
    assert job.strategy.fail_fast is True
    assert job.strategy.max_parallel == 4


def test_matrix_include():
    job = matrix_job("        os: [a, b]\n        include:\n          - os: a\n            extra: x\n          - other: y\n")
    result = job.get_matrixes()
    assert {"os": "a", "extra": "x"} in result
    assert {"os": "b"} in result
    assert {"other": "y"} in result


def test_matrix_bad_exclude():
    job = matrix_job("        os: [a]\n        exclude:\n          - nope: a\n")
    with pytest.raises(WorkflowDecodeError, match="does not match any key"):
        job.get_matrixes()


def test_no_strategy_matrix():
    assert load(SAMPLE).get_job("build").get_matrixes() == [{}]


def test_strategy_parsing():
    assert Strategy(max_parallel_string="x").get_max_parallel() == 0
    assert Strategy(fail_fast_string="false").get_fail_fast() is False
    assert Strategy(fail_fast_string="junk").get_fail_fast() is False


@pytest.mark.parametrize(
    "run,uses,expected",
    [
        ("", "", StepType.INVALID),
        ("x", "y", StepType.INVALID),
        ("x", "", StepType.RUN),
        ("", "docker://alpine", StepType.USES_DOCKER_URL),
        ("", "./.github/workflows/a.yml", StepType.REUSABLE_WORKFLOW_LOCAL),
        ("", "o/r/.github/workflows/a.yml@v1", StepType.REUSABLE_WORKFLOW_REMOTE),
        ("", "./local", StepType.USES_ACTION_LOCAL),
        ("", "org/repo/path@ref", StepType.USES_ACTION_REMOTE),
    ],
)
def test_step_type(run, uses, expected):
    assert Step(run=run, uses=uses).type() is expected


def test_job_type():
    wf = load("on: push\njobs:\n  a:\n    uses: ./.github/workflows/x.yaml\n  b:\n    uses: o/r/.github/workflows/x.yml@main\n  c: {}\n")
    assert wf.get_job("a").type() is JobType.REUSABLE_WORKFLOW_LOCAL
    assert wf.get_job("b").type() is JobType.REUSABLE_WORKFLOW_REMOTE
    assert wf.get_job("c").type() is JobType.DEFAULT


def test_shell_command_and_str():
    assert Step().shell_command() == "bash --noprofile --norc -e -o pipefail {0}"
    assert Step(shell="python").shell_command() == "python {0}"
    assert Step(shell="custom {0}").shell_command() == "custom {0}"
    assert str(Step(id="s1", run="echo")) == "echo"
    assert str(Step(id="s1")) == "s1"