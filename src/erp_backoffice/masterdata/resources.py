"""Registry of master-data dictionaries exposed through the CRUD template."""

from erp_backoffice.masterdata import models, schemas
from erp_backoffice.masterdata.crud import Resource

RESOURCES: tuple[Resource, ...] = (
    Resource(
        "department", "Department", models.DepartmentModel,
        schemas.DepartmentCreate, schemas.DepartmentResponse,
        search_fields=("code", "name"), sort_fields=("code", "name"),
    ),
    Resource(
        "section", "Section", models.SectionModel,
        schemas.SectionCreate, schemas.SectionResponse,
        search_fields=("code", "name"), sort_fields=("code", "name", "dept_id"),
    ),
    Resource(
        "building", "Building", models.BuildingModel,
        schemas.BuildingCreate, schemas.BuildingResponse,
        search_fields=("code", "name"), sort_fields=("code", "name"),
    ),
    Resource(
        "warehouse", "Warehouse", models.WarehouseModel,
        schemas.WarehouseCreate, schemas.WarehouseResponse,
        search_fields=("code", "location"), sort_fields=("code", "location", "building_id"),
    ),
    Resource(
        "location", "Location", models.LocationModel,
        schemas.LocationCreate, schemas.LocationResponse,
        search_fields=("location", "remarks"), sort_fields=("location", "warehouse_id"),
    ),
    Resource(
        "uom", "Unit of measure", models.UomModel,
        schemas.UomCreate, schemas.UomResponse,
        search_fields=("code", "name"), sort_fields=("code", "name"),
    ),
    Resource(
        "currency", "Currency", models.CurrencyModel,
        schemas.CurrencyCreate, schemas.CurrencyResponse,
        search_fields=("code", "description"), sort_fields=("code", "description"),
    ),
    Resource(
        "bank", "Bank", models.BankModel,
        schemas.BankCreate, schemas.BankResponse,
        search_fields=("code", "name", "account_num", "city"),
        sort_fields=("code", "name", "country", "city"),
    ),
    Resource(
        "tax-code", "Tax code", models.TaxCodeModel,
        schemas.TaxCodeCreate, schemas.TaxCodeResponse,
        search_fields=("name", "description", "type"), sort_fields=("name", "type", "rate"),
    ),
    Resource(
        "reason", "Reason", models.ReasonModel,
        schemas.ReasonCreate, schemas.ReasonResponse,
        search_fields=("key", "code", "description"), sort_fields=("key", "code", "menu_id"),
    ),
    Resource(
        "key-value", "Key value", models.KeyValueModel,
        schemas.KeyValueCreate, schemas.KeyValueResponse,
        search_fields=("key", "value"), sort_fields=("key",),
    ),
)

RESOURCES_BY_SLUG = {r.slug: r for r in RESOURCES}

# Tables whose records may run through an approval stream; the record's
# created_by_id is its owner.
APPROVABLE_MODELS = {r.table: r.model for r in RESOURCES}
