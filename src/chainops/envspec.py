# envspec.py
"""
Environment specification for sub-process operations.

An EnvSpec is a base state (inherit the parent environment, or start blank)
plus an ordered list of changes.  Changes are stored innermost first: the
last change is applied last and therefore wins.

Every constructor keeps the list normalized:

  * after an add(v) or remove(v) nothing earlier refers to v;
  * there is at most one prepend(v) and at most one append(v);
  * a prepend/append onto an existing add(v) or prepend/append(v) is folded
    into that change instead of adding a new one.

Because of this, two specs that produce the same environment from the same
sequence of intentions compare equal.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Mapping, Optional, Tuple

INHERIT = "inherit"
BLANK = "blank"

ADD = "add"
REMOVE = "remove"
PREPEND = "prepend"
APPEND = "append"


@dataclass(frozen=True)
class EnvChange:
    op: str
    name: str
    value: Optional[str] = None
    sep: Optional[str] = None

    def __repr__(self) -> str:
        if self.op == REMOVE:
            return f"remove({self.name})"
        if self.op == ADD:
            return f"add({self.name}={self.value!r})"
        return f"{self.op}({self.name}, {self.value!r}, sep={self.sep!r})"


def _elide_all(changes: Tuple[EnvChange, ...], name: str) -> Tuple[EnvChange, ...]:
    return tuple(c for c in changes if c.name != name)


def _elide_for(changes: Tuple[EnvChange, ...], name: str, op: str) -> Tuple[EnvChange, ...]:
    # A new prepend shadows add/prepend of the same variable; append is symmetric.
    return tuple(c for c in changes if not (c.name == name and c.op in (ADD, op)))


@dataclass(frozen=True)
class EnvSpec:
    base: str = INHERIT
    changes: Tuple[EnvChange, ...] = ()

    @classmethod
    def inherit(cls) -> EnvSpec:
        return cls(INHERIT)

    @classmethod
    def blank(cls) -> EnvSpec:
        return cls(BLANK)

    def __repr__(self) -> str:
        return f"EnvSpec({self.base}{''.join(' +' + repr(c) for c in self.changes)})"

    @property
    def is_plain_inherit(self) -> bool:
        return self.base == INHERIT and not self.changes

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    def add(self, name: str, value: str) -> EnvSpec:
        """Set `name` to `value`, shadowing anything previously said about it."""
        return replace(
            self,
            changes=_elide_all(self.changes, name) + (EnvChange(ADD, name, str(value)),),
        )

    def rmv(self, name: str) -> EnvSpec:
        """Remove `name` from the environment."""
        return replace(
            self,
            changes=_elide_all(self.changes, name) + (EnvChange(REMOVE, name),),
        )

    remove = rmv

    def prepend(self, name: str, value: str, sep: str) -> EnvSpec:
        """Put `value` in front of the current value of `name`, joined by `sep`."""
        return self._extend(PREPEND, name, str(value), str(sep))

    def append(self, name: str, value: str, sep: str) -> EnvSpec:
        """Put `value` after the current value of `name`, joined by `sep`."""
        return self._extend(APPEND, name, str(value), str(sep))

    def _extend(self, op: str, name: str, value: str, sep: str) -> EnvSpec:
        for idx, change in enumerate(self.changes):
            if change.name != name or change.op not in (ADD, op):
                continue
            if op == PREPEND:
                joined = value + sep + change.value
            else:
                joined = change.value + sep + value
            folded = replace(change, value=joined)
            return replace(
                self,
                changes=self.changes[:idx] + (folded,) + self.changes[idx + 1:],
            )
        return replace(
            self,
            changes=_elide_for(self.changes, name, op) + (EnvChange(op, name, value, sep),),
        )

    def set_base(self, base: EnvSpec) -> EnvSpec:
        """
        Rebuild this spec on top of `base` instead of its own inherit/blank
        starting point.  The changes are replayed through the constructors so
        the result stays normalized.
        """
        result = base
        for change in self.changes:
            result = result._apply(change)
        return result

    def _apply(self, change: EnvChange) -> EnvSpec:
        if change.op == ADD:
            return self.add(change.name, change.value)
        if change.op == REMOVE:
            return self.rmv(change.name)
        return self._extend(change.op, change.name, change.value, change.sep)

    # ------------------------------------------------------------------
    # Realization
    # ------------------------------------------------------------------

    def realize(self, environ: Mapping[str, str]) -> Dict[str, str]:
        """Compute the concrete environment starting from `environ`."""
        env: Dict[str, str] = {} if self.base == BLANK else dict(environ)
        for change in self.changes:
            current = env.get(change.name)
            if change.op == ADD:
                env[change.name] = change.value
            elif change.op == REMOVE:
                env.pop(change.name, None)
            elif current is None:
                env[change.name] = change.value
            elif change.op == PREPEND:
                env[change.name] = change.value + change.sep + current
            else:
                env[change.name] = current + change.sep + change.value
        return env
