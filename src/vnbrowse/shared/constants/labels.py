"""
Personal list label constants.

The remote attaches arbitrary labels to list entries; six fixed label ids
act as mutually exclusive statuses.
"""

from enum import IntEnum


class ListStatus(IntEnum):
    """Fixed status labels, ordered by scan priority."""

    PLAYING = 1
    FINISHED = 2
    STALLED = 3
    DROPPED = 4
    WISHLIST = 5
    BLACKLIST = 6

    @property
    def display_name(self) -> str:
        return self.name.capitalize()


STATUS_LABEL_IDS: tuple[int, ...] = tuple(status.value for status in ListStatus)

DEFAULT_DISPLAY_STATUS = ListStatus.WISHLIST
DEFAULT_ADD_STATUS = ListStatus.WISHLIST


class Permission:
    """Token permissions reported by /authinfo."""

    LIST_READ = "listread"
    LIST_WRITE = "listwrite"
