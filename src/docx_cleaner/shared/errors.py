"""Error taxonomy for DOCX cleaning runs.

Every failure raised by the rewriting pipeline derives from ``CleanerError``
and carries a ``kind`` tag plus the name of the container entry that failed,
when one is known. Only ``UnsupportedPartError`` is recovered locally (the
part is copied unchanged); every other error aborts the whole run.
"""

from typing import Optional


class CleanerError(Exception):
    """Base exception for all cleaning failures."""

    kind = "CleanerError"

    def __init__(self, message: str, entry_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.entry_name = entry_name

    def __str__(self) -> str:
        if self.entry_name:
            return f"{self.entry_name}: {self.message}"
        return self.message


class InvalidContainerError(CleanerError):
    """Input is not a readable zip package of the expected format."""

    kind = "InvalidContainer"


class MalformedXmlError(CleanerError):
    """A text-bearing part does not parse as well-formed XML."""

    kind = "MalformedXml"

    def __init__(
        self,
        message: str,
        entry_name: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ) -> None:
        super().__init__(message, entry_name)
        self.line = line
        self.column = column


class UnsupportedPartError(CleanerError):
    """A text-bearing part uses structure the rewriter cannot traverse safely."""

    kind = "UnsupportedPart"


class ContainerIOError(CleanerError):
    """Read or write failure on the input or output path."""

    kind = "IoError"


class OutputExistsError(ContainerIOError):
    """The output path already exists and overwriting was not requested."""

    kind = "OutputExists"
