"""Records read from GitHub and the identities used to deduplicate them."""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

NOTIFICATION = "notification"
STAR = "star"

Identity = Tuple[str, str]


class SubjectType(enum.Enum):
    """Kinds of notification subjects we tag alerts with."""

    ISSUE = "Issue"
    PULL_REQUEST = "PullRequest"
    RELEASE = "Release"
    DISCUSSION = "Discussion"
    OTHER = "Other"

    @classmethod
    def classify(cls, raw):
        """Map GitHub's subject.type string onto a known kind, else OTHER."""
        for member in cls:
            if member.value == raw:
                return member
        return cls.OTHER


def parse_timestamp(value) -> Optional[datetime]:
    """Parse a GitHub ISO-8601 timestamp, returning None when unusable."""
    if not value or not isinstance(value, str):
        return None
    try:
        # GitHub timestamps end in 'Z'
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring malformed timestamp: %s", value)
        return None


@dataclass(frozen=True)
class NotificationEvent:
    id: str
    repository_full_name: str
    subject_title: str
    subject_type: SubjectType
    subject_url: Optional[str]
    updated_at: Optional[datetime]
    html_url: Optional[str] = None

    @property
    def identity(self) -> Identity:
        return (NOTIFICATION, self.id)


@dataclass(frozen=True)
class StarEvent:
    repository_full_name: str
    starring_user: str
    starred_at: Optional[datetime]
    user_html_url: Optional[str] = None

    @property
    def key(self) -> str:
        # ':' is legal in neither a repository full name nor a login
        return f"{self.repository_full_name}:{self.starring_user}"

    @property
    def identity(self) -> Identity:
        return (STAR, self.key)
