from pydantic import BaseModel, Field
from typing import Optional, List, Any


class VoteSubmit(BaseModel):
    """
    Ballot body for ``POST /api/polls/{id}/vote``.

    Ids are checked by the vote service rather than here so that the
    poll id is always validated first.
    """
    option_ids: Optional[List[Any]] = Field(None, description="Selected option ids")


class VoteResult(BaseModel):
    """Outcome of an accepted ballot."""
    poll_id: str
    voted_options: List[str]
    user_votes: List[str]
    total_votes: int


class VoteEligibility(BaseModel):
    can_vote: bool
    reason: Optional[str] = None
    has_voted: bool = False
