"""
Vote state machine for (project, user) pairs.

States: neutral (no row), upvoted (vote = 1), downvoted (vote = -1).
Repeating the same vote returns to neutral; voting the other way switches
sides. The primary key on project_votes keeps a user out of both sets at once,
and each transition is a single statement so concurrent voters on the same
project cannot overwrite each other.
"""

from typing import Any, Dict, Optional

UPVOTE = 1
DOWNVOTE = -1

DIRECTIONS = {
    "upvote": UPVOTE,
    "downvote": DOWNVOTE,
}

STATES = {
    None: "neutral",
    UPVOTE: "upvoted",
    DOWNVOTE: "downvoted",
}

# Delete the row when it already holds the requested vote, otherwise upsert it.
TOGGLE_VOTE_SQL = """
    WITH removed AS (
        DELETE FROM project_votes
        WHERE project_id = %(project_id)s
          AND user_id = %(user_id)s
          AND vote = %(vote)s
        RETURNING vote
    )
    INSERT INTO project_votes (project_id, user_id, vote)
    SELECT %(project_id)s, %(user_id)s, %(vote)s
    WHERE NOT EXISTS (SELECT 1 FROM removed)
    ON CONFLICT (project_id, user_id)
    DO UPDATE SET vote = EXCLUDED.vote, created_at = CURRENT_TIMESTAMP
    RETURNING vote;
"""

VOTE_SUMMARY_SQL = """
    SELECT
        ARRAY(
            SELECT user_id FROM project_votes
            WHERE project_id = %(project_id)s AND vote = 1
            ORDER BY user_id
        ) AS upvoted_by,
        ARRAY(
            SELECT user_id FROM project_votes
            WHERE project_id = %(project_id)s AND vote = -1
            ORDER BY user_id
        ) AS downvoted_by;
"""


def apply_vote(cur: Any, project_id: int, user_id: int, vote: int) -> Optional[int]:
    """
    Run one transition and return the resulting vote (None for neutral).
    """
    cur.execute(TOGGLE_VOTE_SQL, {"project_id": project_id, "user_id": user_id, "vote": vote})
    row = cur.fetchone()
    return row["vote"] if row else None


def summarize(upvoted_by: Any, downvoted_by: Any) -> Dict[str, Any]:
    """Counts are always derived from the voter sets."""
    upvoted = list(upvoted_by or [])
    downvoted = list(downvoted_by or [])
    return {
        "upvotes": len(upvoted),
        "downvotes": len(downvoted),
        "upvoted_by": upvoted,
        "downvoted_by": downvoted,
    }


def vote_summary(cur: Any, project_id: int) -> Dict[str, Any]:
    cur.execute(VOTE_SUMMARY_SQL, {"project_id": project_id})
    row = cur.fetchone()
    return summarize(row["upvoted_by"], row["downvoted_by"])
