from typing import Tuple, Union
from pydantic import BaseModel, Field

class Product(BaseModel):
    id: int = Field(gt=0)
    name: str
    price: Union[int, float] = Field(ge=0)  # Les prix entiers restent des int en JSON

    class Config:
        frozen = True  # Catalogue immuable pendant toute la durée du process

# Catalogue en mémoire, jamais modifié
PRODUCTS: Tuple[Product, ...] = (
    Product(id=1, name="Phone", price=12900),
    Product(id=2, name="Laptop", price=32900),
    Product(id=3, name="Tablet", price=15900),
    Product(id=4, name="Headphones", price=2990),
    Product(id=5, name="Monitor", price=6990),
    Product(id=6, name="Dell Large Monitor", price=12990),
)
