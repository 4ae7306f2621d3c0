"""
ORM models. Importing this package registers every table on `Base.metadata`
(Alembic autogenerate and the test-suite's `create_all` both rely on it).
"""

from memohub.models.ai_suggestion import AISuggestion
from memohub.models.invitation import TeamInvitation
from memohub.models.memo import Memo, memo_tags
from memohub.models.search_log import SearchLog
from memohub.models.tag import Tag
from memohub.models.team import Team, TeamMember
from memohub.models.user import User

__all__ = [
    "AISuggestion",
    "Memo",
    "SearchLog",
    "Tag",
    "Team",
    "TeamInvitation",
    "TeamMember",
    "User",
    "memo_tags",
]
