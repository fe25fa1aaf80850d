from pydantic import BaseModel
from typing import Optional


class DisplayValue_(BaseModel):
    value: float
    display_value: Optional[str]
