"""Pydantic schemas for master-data dictionaries.

Each entity has a create schema; its update schema is the same fields made
optional, and its response adds the id and audit stamps.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, create_model


class AuditedResponse(BaseModel):
    id: int
    created_by_id: Optional[int] = None
    updated_by_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


def partial(schema: type[BaseModel]) -> type[BaseModel]:
    """Copy of ``schema`` with every field optional and defaulting to None."""
    fields = {
        name: (Optional[info.annotation], Field(None, **_constraints(info)))
        for name, info in schema.model_fields.items()
    }
    return create_model(schema.__name__.replace("Create", "Update"), **fields)


def _constraints(info) -> dict:
    kwargs = {}
    for meta in info.metadata:
        for attr in ("min_length", "max_length", "ge", "le"):
            value = getattr(meta, attr, None)
            if value is not None:
                kwargs[attr] = value
    return kwargs


# ── Organisation ──


class DepartmentCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    remarks: str = ""


class DepartmentResponse(DepartmentCreate, AuditedResponse):
    pass


class SectionCreate(BaseModel):
    dept_id: Optional[int] = None
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    remarks: str = ""


class SectionResponse(SectionCreate, AuditedResponse):
    pass


# ── Sites ──


class BuildingCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    remarks: str = ""


class BuildingResponse(BuildingCreate, AuditedResponse):
    pass


class WarehouseCreate(BaseModel):
    building_id: Optional[int] = None
    code: str = Field(..., min_length=1, max_length=50)
    location: str = ""
    remarks: str = ""


class WarehouseResponse(WarehouseCreate, AuditedResponse):
    pass


class LocationCreate(BaseModel):
    warehouse_id: Optional[int] = None
    location: str = Field(..., min_length=1, max_length=255)
    remarks: str = ""


class LocationResponse(LocationCreate, AuditedResponse):
    pass


# ── Finance ──


class UomCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=255)
    remarks: str = ""


class UomResponse(UomCreate, AuditedResponse):
    pass


class CurrencyCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=10)
    description: str = ""


class CurrencyResponse(CurrencyCreate, AuditedResponse):
    pass


class BankCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    account_num: str = ""
    currency_id: Optional[int] = None
    bic: str = ""
    country: str = ""
    state: str = ""
    city: str = ""
    address: str = ""
    zip_code: str = ""
    remarks: str = ""


class BankResponse(BankCreate, AuditedResponse):
    pass


class TaxCodeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: str = ""
    type: str = ""
    rate: float = Field(0.0, ge=0)
    include_price: bool = False
    include_discount: bool = False
    include_freight: bool = False
    deductible: bool = False


class TaxCodeResponse(TaxCodeCreate, AuditedResponse):
    pass


# ── Misc ──


class ReasonCreate(BaseModel):
    menu_id: Optional[int] = None
    key: str = ""
    code: str = Field(..., min_length=1, max_length=50)
    description: str = ""
    remarks: str = ""


class ReasonResponse(ReasonCreate, AuditedResponse):
    pass


class KeyValueCreate(BaseModel):
    key: str = Field(..., min_length=1, max_length=100)
    value: str = ""
    remarks: str = ""


class KeyValueResponse(KeyValueCreate, AuditedResponse):
    pass


class CurrencySyncFailure(BaseModel):
    code: str
    error: str


class CurrencySyncResult(BaseModel):
    created: int = 0
    skipped: int = 0
    failed: list[CurrencySyncFailure] = []
