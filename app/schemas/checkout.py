from typing import Optional

from pydantic import BaseModel, Field, constr


class ShippingAddress(BaseModel):
    first_name: constr(strip_whitespace=True, min_length=1)
    last_name: constr(strip_whitespace=True, min_length=1)
    email: Optional[constr(strip_whitespace=True, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")] = None
    phone: Optional[str] = None
    address: constr(strip_whitespace=True, min_length=1)
    city: constr(strip_whitespace=True, min_length=1)
    state: Optional[str] = ""
    zip_code: constr(strip_whitespace=True, min_length=1)
    country: constr(strip_whitespace=True, min_length=1)


class PaymentInfo(BaseModel):
    """Card form fields. Nothing here is charged or stored except the last four digits."""

    card_number: constr(pattern=r"^[0-9 ]{12,23}$")
    expiry_date: constr(pattern=r"^(0[1-9]|1[0-2])/\d{2}$")
    cvv: constr(pattern=r"^\d{3,4}$")
    cardholder_name: constr(strip_whitespace=True, min_length=1)

    def describe(self) -> str:
        digits = self.card_number.replace(" ", "")
        return f"card ending in {digits[-4:]}"


class CheckoutRequest(BaseModel):
    shipping_address: ShippingAddress
    payment: PaymentInfo = Field(...)
