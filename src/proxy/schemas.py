"""Request bodies accepted by the proxy endpoints.

Fields are optional at the schema level: missing fields are reported by the
handlers with the exact messages the app shows, not as 422 validation errors.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AddressInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    address1: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None


class RegisterCustomerRequest(BaseModel):
    """POST /api/registerCustomer"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    email: Optional[str] = None
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    phone: Optional[str] = None
    address: Optional[AddressInput] = None
    vat_number: Optional[str] = Field(default=None, alias="vatNumber")
    # Accepted for compatibility; Shopify sets the password via the invite email
    password: Optional[str] = None


class VatVerificationRequest(BaseModel):
    """POST /api/submitVatVerification"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    customer_email: Optional[str] = Field(default=None, alias="customerEmail")
    business_name: Optional[str] = Field(default=None, alias="businessName")
    country: Optional[str] = None
    vat_number: Optional[str] = Field(default=None, alias="vatNumber")
