"""Running external commands with captured, combined output."""

from __future__ import annotations

import codecs
import io
import os
import shlex
import subprocess
import sys
import threading
from collections.abc import Callable
from contextlib import suppress
from typing import IO, Any, Protocol

from kindkit.errors import aggregate_concurrent, with_stack

__all__ = [
    "Cmd",
    "RunError",
    "LocalCmd",
    "LocalCmder",
    "DEFAULT_CMDER",
    "command",
    "pretty_command",
    "run_error_for_error",
    "combined_output_lines",
    "output_lines",
    "output",
    "inherit_output",
    "run_with_stdout_reader",
    "run_with_stdin_writer",
]

_CHUNK = 64 * 1024


class Cmd(Protocol):
    """A command that can be configured and run somewhere."""

    def run(self) -> None: ...

    def set_env(self, *args: str) -> Cmd: ...

    def set_stdin(self, reader: Any) -> Cmd: ...

    def set_stdout(self, writer: Any) -> Cmd: ...

    def set_stderr(self, writer: Any) -> Cmd: ...


def pretty_command(name: str, *args: str) -> str:
    """Return the command as a string that could be pasted into a shell."""
    return " ".join(shlex.quote(part) for part in (name, *args))


class RunError(Exception):
    """A command failed to start or exited unsuccessfully."""

    def __init__(
        self,
        command: list[str],
        output: bytes = b"",
        inner: BaseException | None = None,
    ) -> None:
        super().__init__(command, output, inner)
        self.command = list(command)
        self.output = output
        self.inner = inner

    def __str__(self) -> str:
        return f'command "{self.pretty_command()}" failed with error: {self.inner}'

    def pretty_command(self) -> str:
        """Return the failed command quoted for a shell."""
        return pretty_command(self.command[0], *self.command[1:])

    @property
    def cause(self) -> BaseException:
        """The underlying error, or this error when there is none."""
        return self.inner if self.inner is not None else self


class _Target:
    """Writes bytes to a binary or text writer."""

    def __init__(self, writer: Any) -> None:
        self._writer = writer
        self._decoder = (
            codecs.getincrementaldecoder("utf-8")(errors="replace")
            if isinstance(writer, io.TextIOBase)
            else None
        )

    def write(self, data: bytes) -> None:
        if self._decoder is not None:
            text = self._decoder.decode(data)
            if text:
                self._writer.write(text)
        else:
            self._writer.write(data)

    def finish(self) -> None:
        if self._decoder is not None:
            tail = self._decoder.decode(b"", final=True)
            if tail:
                self._writer.write(tail)
        flush = getattr(self._writer, "flush", None)
        if callable(flush):
            with suppress(OSError, ValueError):
                flush()


class _Buffer:
    """Collects bytes in memory."""

    def __init__(self) -> None:
        self.data = bytearray()

    def write(self, data: bytes) -> None:
        self.data.extend(data)


class LocalCmd:
    """A command run as a local subprocess."""

    def __init__(self, name: str, *args: str) -> None:
        self.args: list[str] = [name, *args]
        self.env: dict[str, str] | None = None
        self.stdin: Any = None
        self.stdout: Any = None
        self.stderr: Any = None

    def set_env(self, *args: str) -> LocalCmd:
        """Replace the environment with "key=value" entries; none inherits it."""
        if not args:
            self.env = None
        else:
            env: dict[str, str] = {}
            for entry in args:
                key, _, value = entry.partition("=")
                env[key] = value
            self.env = env
        return self

    def set_stdin(self, reader: Any) -> LocalCmd:
        """Set the reader the command's standard input comes from."""
        self.stdin = reader
        return self

    def set_stdout(self, writer: Any) -> LocalCmd:
        """Set the writer the command's standard output goes to."""
        self.stdout = writer
        return self

    def set_stderr(self, writer: Any) -> LocalCmd:
        """Set the writer the command's standard error goes to."""
        self.stderr = writer
        return self

    def run(self) -> None:
        """Run the command, raising a stack-annotated RunError on failure."""
        combined = _Buffer()
        lock = threading.Lock()
        shared = (self.stdout is None and self.stderr is None) or (
            self.stdout is self.stderr
        )

        stdin_arg, feed_source = self._stdin_source()
        try:
            proc = subprocess.Popen(
                self.args,
                env=self.env,
                stdin=stdin_arg,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if shared else subprocess.PIPE,
            )
        except OSError as exc:
            raise with_stack(RunError(self.args, bytes(combined.data), exc))

        copy_errors: list[BaseException] = []
        threads: list[threading.Thread] = []
        finishers: list[_Target] = []

        def targets_for(writer: Any) -> list[_Target | _Buffer]:
            if writer is None:
                return [combined]
            target = _Target(writer)
            finishers.append(target)
            return [target, combined]

        def pump(pipe: IO[bytes], targets: list[_Target | _Buffer]) -> None:
            try:
                for chunk in iter(lambda: pipe.read1(_CHUNK), b""):  # type: ignore[attr-defined]
                    with lock:
                        for target in targets:
                            target.write(chunk)
            except Exception as exc:  # reported once the process has exited
                copy_errors.append(exc)
                for _ in iter(lambda: pipe.read1(_CHUNK), b""):  # type: ignore[attr-defined]
                    pass
            finally:
                pipe.close()

        assert proc.stdout is not None
        threads.append(
            threading.Thread(target=pump, args=(proc.stdout, targets_for(self.stdout)))
        )
        if not shared:
            assert proc.stderr is not None
            threads.append(
                threading.Thread(
                    target=pump, args=(proc.stderr, targets_for(self.stderr))
                )
            )
        if feed_source is not None:
            assert proc.stdin is not None
            threads.append(
                threading.Thread(
                    target=_feed, args=(feed_source, proc.stdin), daemon=True
                )
            )

        for thread in threads:
            thread.start()
        returncode = proc.wait()
        for thread in threads:
            thread.join()
        for target in finishers:
            target.finish()

        output_bytes = bytes(combined.data)
        if returncode != 0:
            inner = subprocess.CalledProcessError(
                returncode, self.args, output=output_bytes
            )
            raise with_stack(RunError(self.args, output_bytes, inner))
        if copy_errors:
            raise with_stack(RunError(self.args, output_bytes, copy_errors[0]))

    def _stdin_source(self) -> tuple[Any, Any]:
        if self.stdin is None:
            return subprocess.DEVNULL, None
        try:
            fd = self.stdin.fileno()
        except (AttributeError, OSError, ValueError):
            return subprocess.PIPE, self.stdin
        return fd, None


def _feed(reader: Any, pipe: IO[bytes]) -> None:
    try:
        while True:
            chunk = reader.read(_CHUNK)
            if not chunk:
                break
            if isinstance(chunk, str):
                chunk = chunk.encode()
            pipe.write(chunk)
            pipe.flush()
    except OSError:
        pass
    finally:
        with suppress(OSError):
            pipe.close()


class LocalCmder:
    """Creates LocalCmd instances."""

    def command(self, name: str, *args: str) -> LocalCmd:
        """Return a new local command."""
        return LocalCmd(name, *args)


DEFAULT_CMDER = LocalCmder()


def command(name: str, *args: str) -> LocalCmd:
    """Return a new command from the default cmder."""
    return DEFAULT_CMDER.command(name, *args)


def run_error_for_error(err: BaseException | None) -> RunError | None:
    """Return the deepest RunError in err's cause chain, or None."""
    found: RunError | None = None
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        if isinstance(err, RunError):
            found = err
        cause = getattr(err, "cause", None)
        err = cause if isinstance(cause, BaseException) else None
    return found


def _scan_lines(data: bytes) -> list[str]:
    text = data.decode(errors="replace")
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def combined_output_lines(cmd: Cmd) -> list[str]:
    """Run cmd and return the lines of its combined stdout and stderr."""
    buff = io.BytesIO()
    cmd.set_stdout(buff)
    cmd.set_stderr(buff)
    cmd.run()
    return _scan_lines(buff.getvalue())


def output_lines(cmd: Cmd) -> list[str]:
    """Run cmd and return the lines of its stdout."""
    buff = io.BytesIO()
    cmd.set_stdout(buff)
    cmd.run()
    return _scan_lines(buff.getvalue())


def output(cmd: Cmd) -> bytes:
    """Run cmd and return its stdout."""
    buff = io.BytesIO()
    cmd.set_stdout(buff)
    cmd.run()
    return buff.getvalue()


def inherit_output(cmd: Cmd) -> Cmd:
    """Send cmd's output to this process's stdout and stderr."""
    cmd.set_stderr(sys.stderr)
    cmd.set_stdout(sys.stdout)
    return cmd


def run_with_stdout_reader(
    cmd: Cmd, reader_func: Callable[[IO[bytes]], object]
) -> None:
    """Run cmd with its stdout piped to reader_func."""
    read_fd, write_fd = os.pipe()
    reader = os.fdopen(read_fd, "rb")
    writer = os.fdopen(write_fd, "wb", buffering=0)
    cmd.set_stdout(writer)

    def consume() -> None:
        with reader:
            reader_func(reader)

    def execute() -> None:
        with writer:
            cmd.run()

    aggregate_concurrent([consume, execute])


def run_with_stdin_writer(
    cmd: Cmd, writer_func: Callable[[IO[bytes]], object]
) -> None:
    """Run cmd with writer_func's output piped to its stdin."""
    read_fd, write_fd = os.pipe()
    reader = os.fdopen(read_fd, "rb")
    writer = os.fdopen(write_fd, "wb", buffering=0)
    cmd.set_stdin(reader)

    def produce() -> None:
        with writer:
            writer_func(writer)

    def execute() -> None:
        with reader:
            cmd.run()

    aggregate_concurrent([produce, execute])