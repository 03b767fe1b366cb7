"""Error helpers: stack-annotated errors, wrapping, aggregates and concurrency."""

from __future__ import annotations

import queue
import threading
import traceback
from collections.abc import Callable, Iterable, Iterator, Sequence
from traceback import StackSummary

__all__ = [
    "AggregateError",
    "new",
    "new_without_stack",
    "errorf",
    "wrap",
    "wrapf",
    "with_stack",
    "stack_trace",
    "new_aggregate",
    "errors",
    "until_error_concurrent",
    "aggregate_concurrent",
]


def _capture_stack() -> StackSummary:
    # drop this helper and the public function that called it
    return StackSummary.from_list(traceback.extract_stack()[:-2])


class _StackError(Exception):
    """An error carrying a message and the stack where it was created."""

    def __init__(self, message: str, stack: StackSummary) -> None:
        super().__init__(message)
        self.message = message
        self.stack = stack

    def __str__(self) -> str:
        return self.message


class _WithMessage(Exception):
    """Annotates a cause with a message prefix."""

    def __init__(self, cause: BaseException, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.message}: {self.cause}"


class _WithStack(Exception):
    """Annotates a cause with the stack at the point of annotation."""

    def __init__(self, cause: BaseException, stack: StackSummary) -> None:
        super().__init__(str(cause))
        self.cause = cause
        self.__cause__ = cause
        self.stack = stack

    def __str__(self) -> str:
        return str(self.cause)


def _chain(err: BaseException | None) -> Iterator[BaseException]:
    """Yield err followed by each error in its ``cause`` chain."""
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        cause = getattr(err, "cause", None)
        err = cause if isinstance(cause, BaseException) else None


def _is(err: BaseException, target: BaseException) -> bool:
    for current in _chain(err):
        if current is target:
            return True
        if isinstance(current, AggregateError) and current.is_(target):
            return True
    return False


def new(message: str) -> Exception:
    """Return an error with message, recording the current stack."""
    return _StackError(message, _capture_stack())


def new_without_stack(message: str) -> Exception:
    """Return a plain error with message and no recorded stack."""
    return Exception(message)


def errorf(fmt: str, *args: object) -> Exception:
    """Return an error with a %-formatted message, recording the current stack."""
    message = fmt % args if args else fmt
    return _StackError(message, _capture_stack())


def wrap(err: BaseException | None, message: str) -> Exception | None:
    """Annotate err with message and the current stack; None stays None."""
    if err is None:
        return None
    return _WithStack(_WithMessage(err, message), _capture_stack())


def wrapf(err: BaseException | None, fmt: str, *args: object) -> Exception | None:
    """Like wrap, with a %-formatted message."""
    if err is None:
        return None
    message = fmt % args if args else fmt
    return _WithStack(_WithMessage(err, message), _capture_stack())


def with_stack(err: BaseException | None) -> Exception | None:
    """Annotate err with the current stack; None stays None."""
    if err is None:
        return None
    return _WithStack(err, _capture_stack())


def stack_trace(err: BaseException | None) -> StackSummary | None:
    """Return the deepest recorded stack in err's cause chain, or None."""
    found: StackSummary | None = None
    for current in _chain(err):
        stack = getattr(current, "stack", None)
        if isinstance(stack, StackSummary):
            found = stack
    return found


class AggregateError(Exception):
    """Several errors reported together."""

    def __init__(self, errors: Iterable[BaseException]) -> None:
        self.errors: list[BaseException] = list(errors)
        super().__init__(*self.errors)

    def __str__(self) -> str:
        if not self.errors:
            return ""
        if len(self.errors) == 1:
            return str(self.errors[0])
        seen: dict[str, None] = {}

        def collect(err: BaseException) -> bool:
            seen.setdefault(str(err))
            return False

        self._visit(collect)
        if len(seen) == 1:
            return next(iter(seen))
        return "[" + ", ".join(seen) + "]"

    def is_(self, target: BaseException) -> bool:
        """Report whether target occurs among the (nested) errors."""
        return self._visit(lambda err: _is(err, target))

    def _visit(self, f: Callable[[BaseException], bool]) -> bool:
        for err in self.errors:
            if isinstance(err, AggregateError):
                if err._visit(f):
                    return True
            elif f(err):
                return True
        return False


def _new_aggregate(errlist: Iterable[BaseException | None]) -> AggregateError | None:
    errs = [e for e in errlist if e is not None]
    return AggregateError(errs) if errs else None


def _flatten(agg: AggregateError | None) -> AggregateError | None:
    if agg is None:
        return None
    result: list[BaseException] = []
    for err in agg.errors:
        if isinstance(err, AggregateError):
            flat = _flatten(err)
            if flat is not None:
                result.extend(flat.errors)
        elif err is not None:
            result.append(err)
    return _new_aggregate(result)


def _reduce(err: BaseException | None) -> BaseException | None:
    if isinstance(err, AggregateError):
        if len(err.errors) == 1:
            return err.errors[0]
        if not err.errors:
            return None
    return err


def new_aggregate(errlist: Iterable[BaseException | None]) -> Exception | None:
    """Build a flattened, reduced aggregate of errlist annotated with a stack.

    Returns None when errlist holds no errors.
    """
    return with_stack(_reduce(_flatten(_new_aggregate(errlist))))


def errors(err: BaseException | None) -> list[BaseException] | None:
    """Return the errors of the deepest aggregate in err's cause chain, or None."""
    found: AggregateError | None = None
    for current in _chain(err):
        if isinstance(current, AggregateError):
            found = current
    return list(found.errors) if found is not None else None


def _run_threads(
    funcs: Sequence[Callable[[], object]],
) -> queue.Queue[Exception | None]:
    results: queue.Queue[Exception | None] = queue.Queue()

    def runner(func: Callable[[], object]) -> None:
        try:
            func()
        except Exception as exc:  # collected and re-raised by the caller
            results.put(exc)
        else:
            results.put(None)

    for func in funcs:
        threading.Thread(target=runner, args=(func,), daemon=True).start()
    return results


def until_error_concurrent(funcs: Sequence[Callable[[], object]]) -> None:
    """Run funcs concurrently; raise the first error any of them raises.

    Returns as soon as an error arrives, without waiting for the rest.
    """
    funcs = list(funcs)
    results = _run_threads(funcs)
    for _ in funcs:
        err = results.get()
        if err is not None:
            raise err


def aggregate_concurrent(funcs: Sequence[Callable[[], object]]) -> None:
    """Run funcs concurrently and wait for all of them.

    Raises the single error if exactly one failed, or an aggregate of all
    errors if several did.
    """
    funcs = list(funcs)
    results = _run_threads(funcs)
    errs = [err for err in (results.get() for _ in funcs) if err is not None]
    if len(errs) > 1:
        aggregate = new_aggregate(errs)
        assert aggregate is not None
        raise aggregate
    if errs:
        raise errs[0]