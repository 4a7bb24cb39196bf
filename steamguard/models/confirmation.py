"""
Mobile confirmation domain models.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import IntEnum, StrEnum
from typing import Any


class ConfirmationKind(IntEnum):
    """
    Closed set of confirmation kinds.

    Anything Steam adds later maps to UNKNOWN; signing does not depend on the kind.
    """

    UNKNOWN = 0
    TRADE = 2
    MARKET_LISTING = 3

    @classmethod
    def from_raw(cls, value: int) -> "ConfirmationKind":
        if value in (cls.TRADE, cls.MARKET_LISTING):
            return cls(value)
        return cls.UNKNOWN


class ConfirmationDecision(StrEnum):
    """Answer to a confirmation; the value is both the `op` and the signature tag."""

    ACCEPT = "allow"
    CANCEL = "cancel"


@dataclass(frozen=True, kw_only=True)
class Confirmation:
    """
    A pending trade, market listing or other action.

    Valid for one poll only: Steam may rotate `key` between polls.

    Attributes:
        id: Confirmation id.
        key: Server nonce echoed back when answering.
        kind: Trade, market listing or unknown.
        raw_type: Type number as sent by Steam.
        type_name: Type label as sent by Steam.
        headline: Human readable description.
        summary: Additional description lines.
        creator_id: Trade offer id, listing id or other creator reference.
        creation_time: When the action was created.
        fetched_at: Server time of the poll that returned this confirmation.
    """

    id: int
    key: str
    kind: ConfirmationKind
    raw_type: int
    type_name: str
    headline: str
    summary: tuple[str, ...]
    creator_id: int
    creation_time: datetime | None
    fetched_at: int

    @property
    def description(self) -> str:
        if self.summary:
            return f"{self.headline}: {', '.join(self.summary)}"
        return self.headline

    @classmethod
    def from_api(cls, data: dict[str, Any], *, fetched_at: int) -> "Confirmation":
        """
        Build from one entry of the `getlist` response.

        Raises:
            KeyError: If id, nonce or type is missing.
            ValueError: If a numeric field is malformed.
            OverflowError: If creation_time is out of range for the platform.
        """
        raw_type = int(data["type"])
        created = data.get("creation_time")
        summary = data.get("summary") or ()
        if isinstance(summary, str):
            summary = (summary,)

        return cls(
            id=int(data["id"]),
            key=str(data["nonce"]),
            kind=ConfirmationKind.from_raw(raw_type),
            raw_type=raw_type,
            type_name=data.get("type_name") or "",
            headline=data.get("headline") or "",
            summary=tuple(str(line) for line in summary),
            creator_id=int(data.get("creator_id") or 0),
            creation_time=(
                datetime.fromtimestamp(int(created), tz=timezone.utc) if created else None
            ),
            fetched_at=fetched_at,
        )
