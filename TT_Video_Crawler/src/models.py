from dataclasses import dataclass, field, asdict
from typing import List, Optional, Dict, Any


@dataclass
class VideoRecord:
    """One crawled video, keyed by its canonical URL."""
    url: str
    title: str = ''
    source_media_url: Optional[str] = None
    channel_url: str = 'Unknown Channel'
    hashtags: List[str] = field(default_factory=list)
    like_count: int = 0
    comment_count: int = 0
    saved_count: int = 0
    share_count: int = 0
    id: Optional[int] = None
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CommentRecord:
    """One comment or reply. `id` is `comment_N` or the platform's native id."""
    id: str
    content: str
    author: str = 'Unknown'
    author_profile_url: Optional[str] = None
    like_count: int = 0
    date_text: str = 'Unknown'
    is_reply: bool = False
    parent_comment_id: Optional[str] = None
    has_replies: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LoadResult:
    """Outcome of one scroll-until-stable run."""
    final_count: int = 0
    peak_count: int = 0
    iterations: int = 0
    stall_count: int = 0
    aborted: bool = False
