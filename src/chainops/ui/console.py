"""Console output formatting utilities for chainops."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import IO, Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from ..files import ActualFile


class Console:
    """Centralized console output formatting."""
    
    def __init__(self, debug: bool = False, stream: Optional[IO[str]] = None):
        """
        Initialize console formatter.
        
        Args:
            debug: If True, also print [DEBUG] lines
            stream: Where operation echo, errors and debug lines go
                    (defaults to the current sys.stderr)
        """
        self.debug = debug
        self._stream = stream

    @property
    def stream(self) -> IO[str]:
        return self._stream if self._stream is not None else sys.stderr

    def _err(self, text: str) -> None:
        print(text, file=self.stream)

    # ------------------------------------------------------------------
    # Executor output
    # ------------------------------------------------------------------

    def print_command(self, exe: str, args: Sequence[str], directory: Path) -> None:
        """Print a command line about to be run."""
        self._err(f"#: {' '.join([exe, *args])} [in {directory}]")

    def print_label(self, label: str, call: bool = False) -> None:
        """Print the label of an operation about to be performed."""
        self._err(f"=> {label}" if call else f"#=> {label}")

    def print_call(
        self,
        name: str,
        inpfiles: ActualFile,
        outfile: ActualFile,
        directory: Path,
    ) -> None:
        """Print a local function call about to be made."""
        inputs = [os.fspath(r.path) for r in inpfiles]
        outputs = [os.fspath(r.path) for r in outfile]
        self._err(f"Call {name!r}, input={inputs}, output={outputs} [in {directory}]")

    def print_tempfile(self, path: Path) -> None:
        """Print creation of a temporary file."""
        self._err(f"Created temp file {path}")

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._err(f"[DEBUG] {message}")


# Global console instance (replaced by library users)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
