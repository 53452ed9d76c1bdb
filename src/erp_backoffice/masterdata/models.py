"""SQLAlchemy models for the plain master-data dictionaries."""

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from erp_backoffice.common.models import AuditStampMixin, Base


class DepartmentModel(Base, AuditStampMixin):
    __tablename__ = "mst_depts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    remarks: Mapped[str] = mapped_column(Text, default="")


class BuildingModel(Base, AuditStampMixin):
    __tablename__ = "mst_buildings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    remarks: Mapped[str] = mapped_column(Text, default="")


class WarehouseModel(Base, AuditStampMixin):
    __tablename__ = "mst_warehouses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    building_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("mst_buildings.id"), nullable=True, index=True
    )
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    location: Mapped[str] = mapped_column(String(255), default="")
    remarks: Mapped[str] = mapped_column(Text, default="")


class LocationModel(Base, AuditStampMixin):
    __tablename__ = "mst_locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    warehouse_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("mst_warehouses.id"), nullable=True, index=True
    )
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    remarks: Mapped[str] = mapped_column(Text, default="")


class SectionModel(Base, AuditStampMixin):
    __tablename__ = "mst_sections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    dept_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("mst_depts.id"), nullable=True, index=True
    )
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    remarks: Mapped[str] = mapped_column(Text, default="")


class UomModel(Base, AuditStampMixin):
    __tablename__ = "mst_uoms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    remarks: Mapped[str] = mapped_column(Text, default="")


class CurrencyModel(Base, AuditStampMixin):
    __tablename__ = "mst_currencies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(10), unique=True, nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(255), default="")


class BankModel(Base, AuditStampMixin):
    __tablename__ = "mst_banks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_num: Mapped[str] = mapped_column(String(100), default="")
    currency_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("mst_currencies.id"), nullable=True, index=True
    )
    bic: Mapped[str] = mapped_column(String(20), default="")
    country: Mapped[str] = mapped_column(String(100), default="")
    state: Mapped[str] = mapped_column(String(100), default="")
    city: Mapped[str] = mapped_column(String(100), default="")
    address: Mapped[str] = mapped_column(Text, default="")
    zip_code: Mapped[str] = mapped_column(String(20), default="")
    remarks: Mapped[str] = mapped_column(Text, default="")


class TaxCodeModel(Base, AuditStampMixin):
    __tablename__ = "mst_tax_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(String(255), default="")
    type: Mapped[str] = mapped_column(String(50), default="")
    rate: Mapped[float] = mapped_column(Float, default=0.0)
    include_price: Mapped[bool] = mapped_column(Boolean, default=False)
    include_discount: Mapped[bool] = mapped_column(Boolean, default=False)
    include_freight: Mapped[bool] = mapped_column(Boolean, default=False)
    deductible: Mapped[bool] = mapped_column(Boolean, default=False)


class ReasonModel(Base, AuditStampMixin):
    __tablename__ = "mst_reasons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    menu_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("mst_menus.id", ondelete="SET NULL"), nullable=True, index=True
    )
    key: Mapped[str] = mapped_column(String(100), default="")
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(String(255), default="")
    remarks: Mapped[str] = mapped_column(Text, default="")


class KeyValueModel(Base, AuditStampMixin):
    __tablename__ = "mst_key_values"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    value: Mapped[str] = mapped_column(Text, default="")
    remarks: Mapped[str] = mapped_column(Text, default="")
