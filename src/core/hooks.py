# src/core/hooks.py - v2
"""Injected strategies for custom compilation, conversion and SVG post-processing.

A strategy declares a stable ``name``. The fingerprint hashes that name
instead of the strategy's code, so two strategies sharing a name must produce
identical output for identical input.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from texsvg.process.models import CliInstruction
    from texsvg.storage.layout import TexPaths


class CompileStrategy(ABC):
    """Replaces the built-in engine command construction."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier hashed into the fingerprint."""

    @abstractmethod
    def instruction(self, paths: TexPaths, intermediate_filetype: str) -> CliInstruction:
        """Return the command that turns ``paths.tex`` into ``paths.intermediate``."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class ConvertStrategy(ABC):
    """Replaces the built-in dvisvgm command construction.

    The returned instruction must write ``paths.svg``. TEXSVG_INPUT,
    TEXSVG_INPUT_FILETYPE and TEXSVG_OUTPUT are set in its environment.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier hashed into the fingerprint."""

    @abstractmethod
    def instruction(self, paths: TexPaths, intermediate_filetype: str) -> CliInstruction:
        """Return the command that turns ``paths.intermediate`` into ``paths.svg``."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class PostprocessStrategy(ABC):
    """A string-to-string SVG transformation."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier hashed into the fingerprint."""

    @abstractmethod
    def process(self, svg: str) -> str:
        """Transform SVG markup."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class FunctionPostprocessor(PostprocessStrategy):
    """Adapt a plain ``str -> str`` callable into a PostprocessStrategy.

    Args:
        fn: Transformation function.
        name: Declared identifier. Defaults to ``module.qualname`` of ``fn``.
    """

    def __init__(self, fn: Callable[[str], str], name: str | None = None) -> None:
        self._fn = fn
        self._name = name or f"{fn.__module__}.{fn.__qualname__}"

    @property
    def name(self) -> str:
        return self._name

    def process(self, svg: str) -> str:
        return self._fn(svg)
