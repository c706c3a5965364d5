# SPDX-License-Identifier: LGPL-3.0-or-later
# vmimport/core/exceptions.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional


def _safe_int(x: Any, default: int = 1) -> int:
    try:
        return int(x)
    except Exception:
        return default


def _clamp_exit_code(code: int) -> int:
    if code < 0:
        return 1
    if code > 255:
        return 255
    return code


def _one_line(s: str, limit: int = 600) -> str:
    s = (s or "").strip().replace("\r", " ").replace("\n", " ")
    s = " ".join(s.split())
    return s if len(s) <= limit else (s[: limit - 3] + "...")


_SECRET_KEY_PARTS = (
    "pass",
    "password",
    "secret",
    "token",
    "apikey",
    "api_key",
    "auth",
    "cacert",
    "private",
    "key",
)


def _is_secret_key(k: str) -> bool:
    ks = (k or "").lower()
    return any(p in ks for p in _SECRET_KEY_PARTS)


def _format_context_compact(ctx: Dict[str, Any]) -> str:
    parts = []
    for k in sorted(ctx.keys()):
        v = ctx.get(k)
        if _is_secret_key(str(k)):
            parts.append(f"{k}=<redacted>")
        else:
            parts.append(f"{k}={v!r}")
    return ", ".join(parts)


@dataclass(eq=False)
class VmImportError(Exception):
    """
    Base project error with:
      - stable fields for reporting/JSON
      - readable __str__ (what users and conditions see)
      - safe code handling (never crashes on int())
    """
    code: int = 1
    msg: str = "error"
    cause: Optional[BaseException] = None
    context: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        self.code = _clamp_exit_code(_safe_int(self.code, default=1))
        self.msg = _one_line(self.msg) or self.__class__.__name__
        if self.context is None:
            self.context = {}
        super().__init__(self.msg)
        self.args = (self.msg,)

    def with_context(self, **ctx: Any) -> "VmImportError":
        if self.context is None:
            self.context = {}
        self.context.update(ctx)
        return self

    def user_message(self, *, include_context: bool = False, include_cause: bool = False) -> str:
        """
        Human-friendly message for CLI output/logs.
        """
        parts = [self.msg or self.__class__.__name__]

        if include_context and self.context:
            parts.append(f"[{_one_line(_format_context_compact(self.context), limit=600)}]")

        if include_cause and self.cause is not None:
            parts.append(f"(cause: {type(self.cause).__name__}: {_one_line(str(self.cause))})")

        return " ".join(parts)

    def __str__(self) -> str:
        return self.user_message(include_context=False, include_cause=False)

    def to_dict(self, *, include_cause: bool = False) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "type": self.__class__.__name__,
            "code": self.code,
            "message": self.msg,
            "context": {
                k: ("<redacted>" if _is_secret_key(str(k)) else v) for k, v in (self.context or {}).items()
            },
        }
        if include_cause and self.cause is not None:
            d["cause"] = {"type": type(self.cause).__name__, "message": _one_line(str(self.cause))}
        return d


class Fatal(VmImportError):
    """
    User-facing fatal error (exit code should be honored by top-level main()).
    """
    pass


class ConfigError(VmImportError):
    """Controller configuration could not be loaded or is invalid."""
    pass


class StoreError(VmImportError):
    """Object store operation failed."""
    pass


class NotFoundError(StoreError):
    """Requested object does not exist."""
    pass


class AlreadyExistsError(StoreError):
    """Create raced with another writer; the object is already there."""
    pass


class ConflictError(StoreError):
    """
    Optimistic concurrency failure: the object's resourceVersion moved on
    since it was read. Always transient; the whole reconcile is retried.
    """
    pass


class ProviderError(VmImportError):
    """
    Source platform operation failed (connect, load, stop/start, snapshot).
    """
    pass


class ValidationError(VmImportError):
    """
    The source VM cannot be imported with the given mappings. Terminal until
    the request's spec changes.
    """
    pass


class WarmImportError(VmImportError):
    """Warm import stage failed."""
    pass


@dataclass(eq=False)
class CleanupErrors(VmImportError):
    """
    Several best-effort cleanup steps failed; their messages are folded
    into a single one.
    """

    errors: List[BaseException] = field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: Iterable[BaseException], *, prefix: str = "cleanup failed") -> "CleanupErrors":
        errs = list(errors)
        msg = "; ".join(_one_line(str(e)) or type(e).__name__ for e in errs)
        inst = cls(code=1, msg=f"{prefix}: {msg}" if msg else prefix, cause=errs[0] if errs else None)
        inst.errors = errs
        return inst


TRANSIENT_ERRORS = (ConflictError, AlreadyExistsError)


def is_transient(e: BaseException) -> bool:
    return isinstance(e, TRANSIENT_ERRORS)


def wrap_fatal(msg: str, exc: Optional[BaseException] = None, code: int = 1, **context: Any) -> Fatal:
    return Fatal(code=code, msg=msg, cause=exc, context=context or None)


def wrap_provider(msg: str, exc: Optional[BaseException] = None, code: int = 50, **context: Any) -> ProviderError:
    return ProviderError(code=code, msg=msg, cause=exc, context=context or None)


def wrap_config(msg: str, exc: Optional[BaseException] = None, code: int = 4, **context: Any) -> ConfigError:
    return ConfigError(code=code, msg=msg, cause=exc, context=context or None)


def fold_messages(head: str, errors: Iterable[BaseException]) -> str:
    """
    Combine a primary message with secondary error messages into one line.
    """
    rest = [_one_line(str(e)) for e in errors if str(e)]
    if not rest:
        return head
    return f"{head} (additionally: {'; '.join(rest)})"


def format_exception_for_cli(e: BaseException, *, verbose: int = 0) -> str:
    """
    One-liner output for CLI.

    verbose=0: just message
    verbose=1: message + compact context (if any)
    verbose>=2: message + context + cause
    """
    if isinstance(e, VmImportError):
        return e.user_message(
            include_context=(verbose >= 1),
            include_cause=(verbose >= 2),
        )

    if verbose >= 2:
        return f"{type(e).__name__}: {_one_line(str(e))}"
    return _one_line(str(e)) or type(e).__name__
