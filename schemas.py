from typing import List, Optional, Union
from pydantic import BaseModel, Field

class Endpoints(BaseModel):
    health: str
    products: str

class IndexResponse(BaseModel):
    message: str
    endpoints: Endpoints

class HealthResponse(BaseModel):
    status: str
    timestamp: str  # ISO-8601, UTC avec suffixe Z

class ProductResponse(BaseModel):
    id: int
    name: str
    price: Union[int, float]

    class Config:
        from_attributes = True

class ProductQueryResponse(BaseModel):
    min_price: Optional[Union[int, float]] = Field(alias="min")
    max_price: Optional[Union[int, float]] = Field(alias="max")  # None quand la borne est infinie
    total_products: int = Field(alias="totalProducts")
    matched_count: int = Field(alias="matchedCount")
    matched_products: List[ProductResponse] = Field(alias="matchedProducts")

    class Config:
        populate_by_name = True

class ErrorResponse(BaseModel):
    error: str
