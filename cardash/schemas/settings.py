"""schemas/settings.py — Company settings payload."""

from pydantic import BaseModel


class CompanySettingsUpdate(BaseModel):
    name: str | None = None
    registration_number: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    logo_url: str | None = None
    signature_url: str | None = None
