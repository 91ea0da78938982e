from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator


class Address(BaseModel):
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zipCode: str = Field(min_length=1)
    country: str = Field(min_length=1)


class CheckoutItem(BaseModel):
    productId: int
    quantity: int = Field(ge=1)
    price: Optional[float] = None


class CheckoutRequest(BaseModel):
    items: List[CheckoutItem] = Field(min_length=1)
    totalAmount: Optional[float] = None
    shippingAddress: Address
    billingAddress: Optional[Address] = None
    paymentMethod: Literal["cod", "bkash"]
    transactionId: Optional[str] = None

    @field_validator("transactionId")
    @classmethod
    def blank_is_missing(cls, value):
        if value is not None and not value.strip():
            return None
        return value.strip() if value else value


class ProductCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    sku: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    price: float = Field(gt=0)
    stockLevel: int = Field(default=0, ge=0)
    imageUrls: List[HttpUrl] = Field(default_factory=list)
    categoryId: Optional[int] = None
    isActive: bool = True
    isFeatured: bool = False


class ProductUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, gt=0)
    stockLevel: Optional[int] = Field(default=None, ge=0)
    imageUrls: Optional[List[HttpUrl]] = None
    categoryId: Optional[int] = None
    isActive: Optional[bool] = None
    isFeatured: Optional[bool] = None

    # omitted means unchanged; only description and categoryId may be cleared
    @field_validator("name", "price", "stockLevel", "imageUrls", "isActive", "isFeatured", mode="before")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class OrderUpdate(BaseModel):
    paymentStatus: Optional[Literal["PENDING", "PAID", "FAILED", "REFUNDED"]] = None
    fulfillmentStatus: Optional[
        Literal["PENDING", "PROCESSING", "SHIPPED", "DELIVERED", "CANCELLED"]
    ] = None
