"""
Request DTOs for the verification engine.

IssueOptions: per-call overrides for issue(); any field left as None falls
back to the purpose policy.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.verification import CodeAlgorithm


class IssueOptions(BaseModel):
    """Overrides for a single issuance.

    ``char_set`` is either a named set (``digits``, ``upper_alnum``,
    ``alnum``, ``url_safe``) or a literal alphabet. ``period`` only applies
    to authenticator purposes; a delivered derived code lives for the ttl.
    """

    model_config = ConfigDict(populate_by_name=True)

    ttl_seconds: Optional[int] = None
    code_length: Optional[int] = None
    char_set: Optional[str] = None
    algorithm: Optional[CodeAlgorithm] = None
    period: Optional[int] = None
    multi_use: Optional[bool] = None
