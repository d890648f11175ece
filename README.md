# ghaflow

A library for working with CI workflow definitions written in YAML. It reads
workflow and action files, plans the order in which jobs run, parses and
partly evaluates `${{ ... }}` expressions, and understands the commands that
steps print to their output.

## Modules

- `ghaflow.workflow`: `read_workflow(stream)` reads a workflow from YAML text or
  a stream (an empty document raises `EOFError`, a malformed one
  `WorkflowError`). A `Workflow` gives its trigger events (`on()`,
  `on_event()`), `workflow_dispatch_config()`, `workflow_call_config()` and its
  jobs (`get_job()`, `get_job_ids()`). A `Job` gives `needs()`, `runs_on()`,
  `container()`, `environment()`, `secrets()`, `inherit_secrets()`, `type()`
  (a `JobType`) and `get_matrixes()`, which expands the strategy matrix with its
  `include` and `exclude` entries. `cartesian_product()` is available on its own.
- `ghaflow.step`: `Step` with `environment()`, `get_env()` (adds an
  `INPUT_<NAME>` entry for every `with` value), `shell_command()` and `type()`
  (a `StepType`); `ContainerSpec`; `step_from_dict()`,
  `container_spec_from_dict()` and `environment_of()`.
- `ghaflow.action`: `read_action(stream)` reads an `action.yml`; `runs.using`
  is checked case-insensitively against `ActionRunsUsing`, and `pre-if` /
  `post-if` default to `always()`.
- `ghaflow.planner`: `new_workflow_planner(path, no_workflow_recurse)` loads one
  workflow file or every `.yml`/`.yaml` file in a directory (recursively unless
  `no_workflow_recurse` is true) and checks job names. The resulting
  `WorkflowPlanner` builds a `Plan` of `Stage`s of `Run`s with `plan_event()`,
  `plan_job()` and `plan_all()`; `get_events()` lists trigger events.
  `create_stages()` orders jobs by their `needs`. Failures raise `PlanError`,
  whose `plan` attribute holds what was planned before the last failure.
- `ghaflow.github_context`: `GithubContext` fills in `ref`, `sha`,
  `ref_type`/`ref_name`, base/head refs and repository owner from the event
  payload. Where the event does not say, `set_ref()`, `set_sha()` and
  `set_repository_and_owner()` call the lookup function you pass in.
  `nested_map_lookup()` follows keys through nested mappings.
- `ghaflow.step_result` and `ghaflow.job_context`: `StepResult`, `StepStatus`,
  `parse_step_status()`, and `JobContext` (with `JobContext.from_dict()`).
- `ghaflow.expr_parser`: `parse_expression(source)` turns expression text into a
  tree of frozen node dataclasses (`VariableNode`, `CompareOpNode`,
  `FuncCallNode` and the rest); parsing stops at `}}`. `walk(node)` yields every
  node, parents first. Errors raise `ExprSyntaxError`.
- `ghaflow.expr_values`: expression value rules: `is_truthy()`, `is_number()`,
  `coerce_to_string()`, `coerce_to_number()`, `compare_values()` (case-insensitive
  for strings, numeric coercion when kinds differ) and `safe_value()`.
  Errors raise `EvaluationError`.
- `ghaflow.expr_functions`: the built-in functions as plain Python functions:
  `contains`, `starts_with`, `ends_with`, `format_string`, `join`, `to_json`,
  `from_json` and `hash_files(working_dir, *patterns)`, which returns the SHA-256
  of the files selected by gitignore-style patterns (or `""` when none match).
- `ghaflow.command`: `try_parse_raw_action_command(line)` parses
  `::name k=v,...::arg` and `##[name k=v;...]arg` lines into an `ActionCommand`,
  or returns `None`; `unescape_command_data()`, `unescape_command_property()`,
  `unescape_kv_pairs()` and `parse_key_value_pairs()` help with the parts.
- `ghaflow.lookpath`: `look_path(file, getenv=None)` finds an executable using
  the running platform's rules; `look_path_unix()`, `look_path_windows()` and
  `look_path_plan9()` apply one platform's rules explicitly. Failure raises
  `LookPathError`.

## Installation

```
pip install .
```

## Examples

Planning a directory of workflows:

```python
from ghaflow.planner import new_workflow_planner

planner = new_workflow_planner(".github/workflows", False)
plan = planner.plan_event("push")
for number, stage in enumerate(plan.stages, 1):
    print(number, stage.get_job_ids())
```

Expanding a matrix:

```python
from ghaflow.workflow import read_workflow

workflow = read_workflow("""
on: push
jobs:
  test:
    runs-on: ubuntu-latest
    strategy:
      matrix:
        os: [linux, macos]
        py: ["3.10", "3.12"]
        exclude:
          - os: macos
            py: "3.10"
""")
print(workflow.get_job("test").get_matrixes())
```

Parsing an expression and using the built-in functions:

```python
from ghaflow.expr_parser import CompareOp, parse_expression
from ghaflow.expr_functions import format_string
from ghaflow.expr_values import compare_values

tree = parse_expression("github.event_name == 'push' && success()")
print(tree)
print(format_string("Hello {0}!", "Mona"))       # Hello Mona!
print(compare_values("3", 3, CompareOp.EQ))      # True
```

Parsing a runner command line:

```python
from ghaflow.command import try_parse_raw_action_command

command = try_parse_raw_action_command("::set-output name=result::42\n")
print(command.command, command.kv_pairs, command.arg)
```

## What this package does not do

- It does not evaluate whole expressions against contexts. The parser, the value
  rules and the built-in functions are here, but there is no evaluator that
  walks a parsed tree, resolves `github`, `env`, `steps`, `matrix` or `needs`,
  or answers the status checks `success()`, `failure()`, `always()` and
  `cancelled()`.
- It does not run workflows: no containers are created and no steps are
  executed. Plans describe the order of jobs only.
- It does not inspect git repositories; the `GithubContext` methods that need a
  ref, revision or repository name take a lookup function from the caller.
- It has no command-line program.

## Running the tests

```
pip install .[test]
pytest
```