"""Per-retrieval grouping of chunk fragments by session."""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from common.protocol import ChunkEnvelope
from common.types import LedgerRecord, SessionState


@dataclass
class FragmentEntry:
    envelope: ChunkEnvelope
    record: LedgerRecord


@dataclass
class SessionGroup:
    """
    Fragments seen so far for one (sender, session id) pair, in arrival order.
    """
    session_id: str
    sender: str
    recipient: str
    entries: List[FragmentEntry] = field(default_factory=list)
    state: SessionState = SessionState.COLLECTING

    def add(self, envelope: ChunkEnvelope, record: LedgerRecord) -> None:
        self.entries.append(FragmentEntry(envelope=envelope, record=record))

    def expected_total(self) -> int:
        """tot declared by the hash-carrying fragment, else by the first fragment seen."""
        for entry in self.entries:
            if entry.envelope.h:
                return entry.envelope.tot
        return self.entries[0].envelope.tot

    def missing_indices(self) -> List[int]:
        total = self.expected_total()
        present = {entry.envelope.idx for entry in self.entries if entry.envelope.tot == total}
        return [index for index in range(total) if index not in present]

    @property
    def is_complete(self) -> bool:
        return bool(self.entries) and not self.missing_indices()


class FragmentArena:
    """
    Fragment groups for one retrieval call.

    Created fresh by every collect() so concurrent scans of different
    conversations never share groups.
    """

    def __init__(self):
        self._groups: Dict[Tuple[str, str], SessionGroup] = {}

    def add(self, envelope: ChunkEnvelope, record: LedgerRecord) -> SessionGroup:
        key = (record.sender, envelope.sid)
        group = self._groups.get(key)
        if group is None:
            group = SessionGroup(session_id=envelope.sid, sender=record.sender, recipient=envelope.to)
            self._groups[key] = group
        group.add(envelope, record)
        return group

    def get(self, sender: str, session_id: str) -> Optional[SessionGroup]:
        return self._groups.get((sender, session_id))

    def groups(self) -> List[SessionGroup]:
        return list(self._groups.values())

    def pending(self) -> List[SessionGroup]:
        return [group for group in self._groups.values() if not group.is_complete]

    def __len__(self) -> int:
        return len(self._groups)

    def __iter__(self) -> Iterator[SessionGroup]:
        return iter(self.groups())
