from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class ExpanderError(Exception):
    """Base error envelope. The CLI prints these rather than raw exceptions."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<expand>"
        return f"{loc}: {self.code}: {self.message}"


class GeneratorError(ExpanderError):
    """Transport or parse failure for a single expansion attempt."""


class RequestError(ExpanderError):
    pass


class InputLoadError(ExpanderError):
    pass


class CatalogConfigError(ValueError):
    pass
