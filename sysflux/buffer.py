#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
from collections import deque
from threading import Lock
from typing import Deque, Iterable, NamedTuple, Tuple

DEFAULT_MAX_ENTRIES = 10 * 1000


class EntriesSnapshot(NamedTuple):
    entries: Tuple[str, ...]
    # total number of entries ever appended to the buffer when the snapshot was taken
    appended_mark: int

    def payload(self) -> str:
        return "\n".join(self.entries)


class EntryBuffer:
    """
    Bounded, ordered collection of formatted entries awaiting delivery.

    Shared between the Reporter (appends) and the Sender (snapshots and removes). All access goes through a single
    lock. When an append overflows the capacity, the oldest entries are dropped first.

    Entries are removed only after a confirmed delivery, and only those of the delivered snapshot that weren't already
    dropped by overflow in the meantime.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        assert max_entries > 0, f"invalid buffer capacity {max_entries}"
        self._max_entries = max_entries
        self._entries: Deque[str] = deque()
        self._appended = 0
        self._lock = Lock()

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def append(self, entries: Iterable[str]) -> int:
        """
        Appends entries and trims the buffer back to its capacity.
        Returns the number of old entries dropped.
        """
        with self._lock:
            for entry in entries:
                self._entries.append(entry)
                self._appended += 1
            dropped = 0
            while len(self._entries) > self._max_entries:
                self._entries.popleft()
                dropped += 1
            return dropped

    def snapshot(self) -> EntriesSnapshot:
        with self._lock:
            return EntriesSnapshot(tuple(self._entries), self._appended)

    def remove_sent(self, snapshot: EntriesSnapshot) -> int:
        """
        Removes the entries of a delivered snapshot, keeping whatever was appended after it was taken.
        Returns the number of entries removed.
        """
        with self._lock:
            appended_since = self._appended - snapshot.appended_mark
            assert appended_since >= 0, "snapshot is newer than the buffer"
            to_remove = max(len(self._entries) - appended_since, 0)
            for _ in range(to_remove):
                self._entries.popleft()
            return to_remove

    def entries(self) -> Tuple[str, ...]:
        return self.snapshot().entries
