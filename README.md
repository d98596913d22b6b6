# skm

Spec-Kit Manager. `skm` walks a directory tree and looks for projects that
have a `.specify` or `specs` directory. For each project it works out which
Spec-Kit stage it has reached. It then ranks the projects by how urgently a
person needs to look at them.

## Installing

```
pip install .
```

The only runtime dependency is `tomli-w`, which is used to write the
configuration file. Git repositories are read directly from their on-disk
format, so no `git` program is needed.

## Commands

### scan

```
skm scan
skm scan --root ~/work
```

`scan` walks the root directory down to the configured scan depth (5 by
default). It does the following:

- prints each project it finds, with the project's stage and priority;
- caches the result in `<root>/.skm/status.json`;
- writes a Markdown report to `<root>/.skm/STATUS.md`;
- prints a summary.

The `--glob` option is accepted but has no effect.

### status

```
skm status
skm status --json
skm status --only needs-attention
skm status --only incomplete
skm status --only stage:plan
```

If the cache is less than five minutes old, `status` reads from it. It then
prints an overview, or the full JSON document when `--json` is given.

The overview lists the ten projects with the highest priority. Each has a
marker:

- ✅ all tasks are done;
- 🔴 priority above 50;
- 🟡 priority above 30;
- 🟢 otherwise.

If the cache is missing or stale, `status` runs a fresh scan instead.

`--only` filters the projects shown:

- `needs-attention` keeps projects whose priority is above the attention
  threshold;
- `incomplete` keeps projects with unfinished tasks;
- `stage:<name>` keeps projects in that stage. The stage name is not case
  sensitive.

Any other value shows every project.

The exit status is 0 on success. It is 1 on a reading or parsing error, and
the error message is printed to stderr.

## How projects are judged

### Where artifacts are read from

The artifacts of a project are read from its `specs` directory when that
holds any artifacts. Otherwise they are read from `.specify`.

Artifacts that sit directly in that directory are used first:

- `constitution.md`, or `memory/constitution.md`;
- `spec.md`;
- `plan.md`;
- `tasks.md`.

If there are none, numbered feature directories such as `001-login` are
searched. The search starts from the highest number. It takes the latest
spec, plan and tasks file. In that case the constitution is taken from
`.specify/memory/constitution.md`.

### Stages

The stage follows from the first artifact that is missing:

| Missing artifact | Stage |
|------------------|-------|
| constitution | Bootstrap |
| spec | Specify |
| plan | Plan |
| tasks | Tasks |

A project that has all four artifacts is in `Implement`. Each stage has a
recommended next action.

### Task lists

`tasks.md` is counted in these notations:

- checkbox tasks: `- [ ]`, `- [x]`, `* [X]`;
- task ids such as `T001:`;
- emoji markers: ✅ ☑ ⬜ ☐ ❌ 🔄;
- `TODO:` and `DONE:` lines.

Parallel markers (`[P]`, `(P)`, `||`) and blocked markers (`[BLOCKED]`, 🚫,
⛔) are counted as well.

### Risk

Risk runs from 0 to 3. Each of these adds one:

- a recent commit message containing FIXME, TODO, XXX, HACK or BUG;
- more than three parallel tasks;
- any blocked task;
- uncommitted changes.

### Priority

The priority score is computed as:

```
needs_human·40 + risk/3·25 + staleness·15 + impact·15 − confidence/2·10
```

The numbers 40, 25, 15, 15 and 10 are the default weights.

- `needs_human` is 1 when a human is needed and 0 otherwise.
- Staleness is the number of days since the spec last changed, divided by
  seven and capped at 1.
- Impact is 2 unless the project's metadata sets it. Values 1, 2 and 3 map
  to 0.33, 0.66 and 1.0.
- Confidence is 2 for projects approved by a human, and 1 otherwise.

## Configuration

Global settings are read from `~/.config/skm/config.toml`. If the file is
absent, the defaults apply. If the file exists, it must give every setting;
only `max_projects` may be left out. A missing or mistyped setting is a
configuration error.

A complete file can be written from Python with `GlobalConfig().save()`.
The file then looks like this:

```toml
attention_threshold = 50.0
agent_priority = ["claude", "cursor", "nvim", "bash"]
default_editor = "nvim"
qdrant_url = "http://localhost:6333"
automation_level = "L1"
dry_run_default = true
scan_depth = 5
watch_interval_secs = 5

[weights]
needs_human = 40.0
risk = 25.0
staleness = 15.0
impact = 15.0
confidence = 10.0
```

Per-project metadata lives in `<root>/.skm/meta.json`. There is no command
for editing it. From Python, use `ProjectMetaStore.set_value` with one of
these keys:

- `impact`
- `approved_by_human`
- `agent_command`
- `command.<name>`

Then call `save(root)`.

```python
from skm.state import ProjectMetaStore

store = ProjectMetaStore.load("~/work")
store.set_value("myproject", "impact", "3")
store.set_value("myproject", "approved_by_human", "true")
store.save("~/work")
```

## Using it as a library

```python
from pathlib import Path
from skm.parser import parse_artifacts, parse_tasks_file
from skm.stage import detect_stage, get_next_action
from skm.finder import detect_project_type

artifacts = parse_artifacts(Path("myproject/specs"))
stage = detect_stage(artifacts, detect_project_type(Path("myproject")))
print(stage, get_next_action(stage).description)
```

These functions are also available:

- `skm.cli.scan_projects(root)` returns a `PortfolioStatus`.
- `skm.markdown.generate_markdown_report(status)` renders a portfolio as
  Markdown.
- `skm.git.get_git_status(path)` reports the branch, whether the tree is
  clean, the last commit time and the distance from upstream.

Set the `SKM_DEBUG` environment variable to see diagnostic output on stderr.

## What it does not do

- `skm report` and `skm digest` only print what they would generate and
  where. They write no files; the Markdown report is written by `scan`.
- No project is ever placed in the `Test`, `Review` or `Done` stage. Stages
  come from artifacts alone.
- Build and test output is not inspected: `has_error_markers` always reports
  none.
- Several configuration values are stored but used by nothing in the
  package:
  - `agent_priority`
  - `default_editor`
  - `qdrant_url`
  - `automation_level`
  - `dry_run_default`
  - `watch_interval_secs`
  - `max_projects`

  There is no watch mode, no launching of editors or agents, no automated
  actions and no search index.