from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RequestContext:
    """Where a change came from; copied onto the audit row."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
