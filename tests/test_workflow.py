import io

import pytest

from ghaflow.workflow import (
    Job,
    JobType,
    Strategy,
    WorkflowCall,
    WorkflowError,
    cartesian_product,
    read_workflow,
)


def _wf(text):
    return read_workflow(io.StringIO(text))


def test_on_scalar_is_not_boolean():
    wf = _wf("on: push\njobs:\n  build:\n    runs-on: ubuntu\n")
    assert wf.on() == ["push"]


def test_on_sequence_and_mapping():
    assert _wf("on: [push, pull_request]\n").on() == ["push", "pull_request"]
    wf = _wf("on:\n  push:\n    branches: [main]\n  workflow_dispatch:\n")
    assert wf.on() == ["push", "workflow_dispatch"]
    assert wf.on_event("push") == {"branches": ["main"]}
    assert wf.on_event("missing") is None


def test_empty_document_raises_eof():
    with pytest.raises(EOFError):
        _wf("")


def test_get_job_defaults():
    wf = _wf("on: push\njobs:\n  build:\n    runs-on: ubuntu\n")
    job = wf.get_job("build")
    assert job.name == "build"
    assert job.if_ == "success()"
    assert wf.get_job("nope") is None
    assert wf.get_job_ids() == ["build"]


def test_needs_scalar_and_sequence():
    wf = _wf(
        "on: push\njobs:\n  a:\n    needs: b\n  c:\n    needs: [a, b]\n  b:\n    runs-on: x\n"
    )
    assert wf.jobs["a"].needs() == ["b"]
    assert wf.jobs["c"].needs() == ["a", "b"]
    assert wf.jobs["b"].needs() == []


def test_runs_on_mapping_appends_group():
    job = Job(raw_runs_on={"labels": ["linux", "x64"], "group": "mygroup"})
    assert job.runs_on() == ["linux", "x64", "mygroup"]
    assert Job(raw_runs_on="ubuntu").runs_on() == ["ubuntu"]


def test_container_and_secrets():
    assert Job(raw_container="node:16").container().image == "node:16"
    assert Job(raw_container={"image": "alpine"}).container().image == "alpine"
    assert Job().container() is None
    assert Job(raw_secrets="inherit").inherit_secrets() is True
    assert Job(raw_secrets={"a": "b"}).secrets() == {"a": "b"}
    assert Job(raw_secrets="inherit").secrets() is None


def test_strategy_defaults():
    strategy = Strategy()
    assert strategy.get_max_parallel() == 4
    assert strategy.get_fail_fast() is True
    assert Strategy(fail_fast_string="false").get_fail_fast() is False
    assert Strategy(max_parallel_string="2").get_max_parallel() == 2


def test_cartesian_product_size_and_uniqueness():
    product = cartesian_product({"os": ["a", "b"], "v": [1, 2, 3]})
    assert len(product) == 6
    assert len({(p["os"], p["v"]) for p in product}) == 6
    assert cartesian_product({"os": ["a"], "v": []}) == []
    assert cartesian_product({}) == []


def test_get_matrixes_exclude_and_include():
    job = Job(
        strategy=Strategy(
            raw_matrix={
                "os": ["a", "b"],
                "v": [1, 2],
                "exclude": [{"os": "a", "v": 1}],
                "include": [{"os": "b", "extra": "yes"}, {"other": "z"}],
            }
        )
    )
    matrixes = job.get_matrixes()
    assert {"os": "a", "v": 1} not in matrixes
    assert {"other": "z"} in matrixes
    assert all(m.get("extra") == "yes" for m in matrixes if m.get("os") == "b")
    assert job.strategy.fail_fast is True


def test_get_matrixes_without_strategy():
    assert Job().get_matrixes() == [{}]


def test_exclude_unknown_key_raises():
    job = Job(strategy=Strategy(raw_matrix={"os": ["a"], "exclude": [{"bogus": 1}]}))
    with pytest.raises(WorkflowError):
        job.get_matrixes()


def test_job_type():
    assert Job().type() == JobType.DEFAULT
    assert Job(uses="./.github/workflows/x.yml").type() == JobType.REUSABLE_WORKFLOW_LOCAL
    remote = Job(uses="org/repo/.github/workflows/x.yml@v1")
    assert remote.type() == JobType.REUSABLE_WORKFLOW_REMOTE
    with pytest.raises(WorkflowError):
        Job(uses="org/repo/x.yml").type()
    assert str(JobType.REUSABLE_WORKFLOW_LOCAL) == "local-reusable-workflow"


def test_workflow_call_and_dispatch_config():
    assert _wf("on: workflow_call\n").workflow_call_config() == WorkflowCall()
    wf = _wf(
        "on:\n  workflow_dispatch:\n    inputs:\n      level:\n"
        "        required: true\n        options: [info, debug]\n"
    )
    config = wf.workflow_dispatch_config()
    assert config.inputs["level"].required is True
    assert config.inputs["level"].options == ["info", "debug"]
    assert _wf("on: push\n").workflow_dispatch_config() is None