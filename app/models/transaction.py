from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Transaction(BaseModel):
    date: datetime
    amount: float  # signed; analytics use abs(amount)
    category: str
    transaction_id: Optional[str] = None
    description: Optional[str] = ""

    model_config = ConfigDict(frozen=True)
