from typing import Optional

from pydantic import BaseModel


class CorrectionDecisionRequest(BaseModel):
    status: Optional[str] = None
