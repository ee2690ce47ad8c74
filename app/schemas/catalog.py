from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, constr


class ProductCreateRequest(BaseModel):
    name: constr(strip_whitespace=True, min_length=1, max_length=200)
    description: Optional[str] = ""
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    original_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    image: Optional[str] = None
    category: Optional[str] = None
    stock: int = Field(default=0, ge=0)
    tags: List[str] = Field(default_factory=list)


class ProductUpdateRequest(BaseModel):
    name: Optional[constr(strip_whitespace=True, min_length=1, max_length=200)] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    original_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    image: Optional[str] = None
    category: Optional[str] = None
    stock: Optional[int] = Field(default=None, ge=0)
    tags: Optional[List[str]] = None


class BulkStockRequest(BaseModel):
    product_ids: List[str] = Field(min_length=1)
    stock: int = Field(ge=0)


class CartAddRequest(BaseModel):
    product_id: str
    quantity: int = 1


class CartQuantityRequest(BaseModel):
    quantity: int
