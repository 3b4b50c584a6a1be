"""
Logging backends.

Available backends:
- ConsoleBackend / ColorConsoleBackend: line output on stderr
- FileBackend: buffered async file logging with rotation
"""

from .console import ConsoleBackend, ColorConsoleBackend
from .file import FileBackend

__all__ = [
    'ConsoleBackend',
    'ColorConsoleBackend',
    'FileBackend',
]
