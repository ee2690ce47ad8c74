from typing import Optional

from pydantic import BaseModel


class ReviewRequest(BaseModel):
    # Range and emptiness rules live in review_service so non-HTTP callers get them too
    rating: int
    title: Optional[str] = None
    content: str = ""
    user_name: Optional[str] = None


class HelpfulVoteRequest(BaseModel):
    product_id: str
