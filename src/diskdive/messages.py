"""Messages consumed by the navigation model's control loop.

Background workers only ever communicate with the model by putting one of
these into the shared mailbox; the model applies them one at a time.
"""

from dataclasses import dataclass, field

from diskdive.models import DeleteTally, Entry, LargeFile


@dataclass(frozen=True)
class KeyPressed:
    key: str


@dataclass(frozen=True)
class Tick:
    """Periodic animation tick."""


@dataclass(frozen=True)
class Resized:
    width: int
    height: int


@dataclass(frozen=True)
class ListingReady:
    """The children of a scanned location, all with pending sizes."""

    job_id: int
    entries: list[Entry] = field(default_factory=list)


@dataclass(frozen=True)
class EntrySized:
    """One scanned root resolved to its total size."""

    job_id: int
    path: str
    size: int


@dataclass(frozen=True)
class ScanFinished:
    """All roots are sized.

    ``order`` lists the paths of a directory listing largest first; it is
    empty for the overview, whose roots keep their configured order.
    """

    job_id: int
    large_files: list[LargeFile] = field(default_factory=list)
    order: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DeleteFinished:
    job_id: int
    path: str
    tally: DeleteTally
