# kindkit

Building blocks for tools that manage local Kubernetes clusters whose
"nodes" are containers: error handling, host filesystem helpers, running
external commands, and version reporting. It has no dependencies beyond the
standard library.

## Installing

```
pip install .
pip install ".[test]"   # to run the test suite
```

## Modules

### `kindkit.errors`

- `new(message)` and `errorf(fmt, *args)` return an exception that records
  the stack where it was created; `new_without_stack(message)` returns a
  plain one.
- `wrap(err, message)` and `wrapf(err, fmt, *args)` annotate an error with a
  message prefix (`"message: cause"`) and the current stack;
  `with_stack(err)` adds only the stack. All three return `None` for `None`.
- `stack_trace(err)` returns the deepest recorded stack in an error's
  `cause` chain, or `None`.
- `AggregateError` holds several errors. Its message lists the distinct
  messages as `[a, b]`; `is_(target)` reports whether `target` occurs among
  the nested errors.
- `new_aggregate(errlist)` drops `None` entries, flattens nested aggregates,
  returns the single error itself when only one is left, and `None` when
  none are.
- `errors(err)` returns the errors of the deepest aggregate in a cause
  chain, or `None`.
- `until_error_concurrent(funcs)` runs callables in threads and raises the
  first error that arrives. `aggregate_concurrent(funcs)` waits for all of
  them and raises the one error, or an aggregate when several failed.

### `kindkit.fs`

- `temp_dir(dir="", prefix="")` creates a temporary directory; on macOS a
  path under `/var/` is returned under `/private/var/` so that it can be
  bind-mounted.
- `is_abs(host_path)` treats POSIX absolute paths as absolute on every
  platform.
- `copy(src, dst)` copies files and directories recursively, keeping file
  modes and following symlinks (like `cp -r`); `copy_file(src, dst)` copies
  one file.

### `kindkit.execution`

- `LocalCmd` runs a local subprocess. `set_env`, `set_stdin`, `set_stdout`
  and `set_stderr` return the command for chaining; `run()` raises a
  `RunError` (annotated with a stack) if the command cannot start or exits
  non-zero. Output written to binary or text writers is also captured.
- `RunError` has `command`, `output` (the combined captured output),
  `inner`, `cause` and `pretty_command()`.
- `LocalCmder.command(name, *args)`, and the module-level `command`, create
  commands.
- `output(cmd)`, `output_lines(cmd)` and `combined_output_lines(cmd)` run a
  command and return its stdout (or stdout and stderr) as bytes or lines.
- `inherit_output(cmd)` sends a command's output to this process's stdout
  and stderr.
- `run_with_stdout_reader(cmd, reader_func)` and
  `run_with_stdin_writer(cmd, writer_func)` stream a command's output to a
  function, or a function's output into a command, through a pipe.
- `pretty_command(name, *args)` quotes a command for pasting into a shell;
  `run_error_for_error(err)` finds the `RunError` in a cause chain.

### `kindkit.version`

`version()` returns the semantic version (`0.19.0-alpha`, extended with a
commit count and short commit hash when given), and `display_version()`
adds the Python version and platform.

## Example

```python
from kindkit import execution, version

print(execution.pretty_command("echo", "hello world"))
# echo 'hello world'

print(execution.output_lines(execution.command("printf", "a\nb\n")))
# ['a', 'b']

print(version.version(git_commit="0123456789abcdef", git_commit_count="7"))
# 0.19.0-alpha.7+0123456789abcd
```

## Command line

Print the version, or only the semantic version with `-q` / `--quiet`:

```
kindkit-version
kindkit-version --quiet
```

## What it does not do

kindkit does not create, delete or list clusters, does not select or talk to
cluster nodes, and does not load container images into them. It provides
the helpers such tooling is built from; the only command it installs is
`kindkit-version`.