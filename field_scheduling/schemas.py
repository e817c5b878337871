"""Response envelope shared by every endpoint"""

from typing import Any, Optional

from pydantic import BaseModel


class ActionResult(BaseModel):
    """Uniform success/failure result; failures carry a message and an error kind"""

    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    kind: Optional[str] = None


def ok(data: Any = None) -> ActionResult:
    return ActionResult(success=True, data=data)
