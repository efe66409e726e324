"""
Duplicate entry detection.

Entries are duplicates when URL, username and password all match exactly.
Within a group the newest entry is kept by default and every older one is
proposed for deletion. Nothing here touches storage; the caller confirms the
plan and passes the chosen ids to StorageManager.delete_entries().
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

DuplicateKey = Tuple[str, str, str]


@dataclass
class DuplicateMember:
    entry: Any
    is_candidate: bool


@dataclass
class DuplicateGroup:
    """Entries sharing one key, ordered oldest to newest."""
    key: DuplicateKey
    members: List[DuplicateMember] = field(default_factory=list)

    @property
    def entries(self) -> List[Any]:
        return [m.entry for m in self.members]

    @property
    def candidate_ids(self) -> List[int]:
        return [m.entry.id for m in self.members if m.is_candidate]

    @property
    def keeper(self) -> Any:
        return self.members[-1].entry

    def __len__(self) -> int:
        return len(self.members)


def duplicate_key(entry) -> DuplicateKey:
    """Return the (url, username, password) key; None counts as empty."""
    return (entry.url or "", entry.username or "", entry.password or "")


def find_duplicate_groups(entries: Iterable[Any]) -> Dict[DuplicateKey, DuplicateGroup]:
    """
    Group entries with identical keys.

    Groups appear in the order their first member was seen. Each group is
    sorted by created_at; entries created at the same moment keep their
    input order. All members except the last are marked as candidates.

    Args:
        entries: Decrypted entries, e.g. StorageManager.get_entries()

    Returns:
        Mapping of key to group, containing only groups of two or more
    """
    buckets: Dict[DuplicateKey, List[Any]] = {}
    for entry in entries:
        buckets.setdefault(duplicate_key(entry), []).append(entry)

    groups = {}
    for key, bucket in buckets.items():
        if len(bucket) < 2:
            continue
        # sorted() is stable, which keeps input order for equal timestamps
        ordered = sorted(bucket, key=lambda e: e.created_at)
        last = len(ordered) - 1
        groups[key] = DuplicateGroup(
            key=key,
            members=[DuplicateMember(entry=e, is_candidate=i < last) for i, e in enumerate(ordered)],
        )
    return groups


def deletion_candidates(groups: Dict[DuplicateKey, DuplicateGroup]) -> List[int]:
    """Flatten the default candidate ids of every group, in group order."""
    ids = []
    for group in groups.values():
        ids.extend(group.candidate_ids)
    return ids


def keep_only(group: DuplicateGroup, keep_id: int) -> List[int]:
    """
    Return the ids to delete so that only keep_id survives in the group.

    Raises:
        ValueError: If keep_id is not a member of the group
    """
    ids = [e.id for e in group.entries]
    if keep_id not in ids:
        raise ValueError(f"Entry {keep_id} is not in this duplicate group")
    return [entry_id for entry_id in ids if entry_id != keep_id]
