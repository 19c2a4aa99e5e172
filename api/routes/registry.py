"""
api/routes/registry.py -- CRUD endpoints for every reference entity.

For each entity <name> in role, area, country, company, site, activity,
businessunit, assessor, privilege, language:

  POST   /<name>        -- create                                   201
  GET    /<name>        -- list (?skip=&limit=&expand=)             200
  GET    /<name>/{id}   -- one record (?expand=)                    200 / 404
  PUT    /<name>/{id}   -- partial update of the supplied fields    200 / 404
  DELETE /<name>/{id}   -- Referential Guard, then delete           200 / 404

GET /role additionally filters on ?code= and ?name= (exact match; the code is
upper-cased first, as it is on write).

Every route requires auth (router-level get_identity). Writes run
registry.validation.validate_write() before touching the store, so duplicate
natural keys and dangling references are reported as DUPLICATE_VALUE and
UNKNOWN_REFERENCE instead of surfacing as database errors.

The routers are built by one factory because the entities differ only in
their models. Request body annotations are resolved at definition time, so
this module must not use postponed evaluation of annotations.
"""

import logging
from dataclasses import asdict
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, Path, Query, Request
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError

from api import models
from api.models import MessageResponse
from auth.dependencies import get_identity
from core.errors import Conflict, ValidationFailed
from core.identifiers import OBJECT_ID_PATTERN
from registry.expansion import expand_record, parse_expand
from registry.guards import ReferentialGuard
from registry.store import RegistryStore, get_entity
from registry.validation import ensure_exists, validate_write

logger = logging.getLogger("registry.api")

_MANAGED = {"id", "created_at", "updated_at"}


def _is_unique_violation(exc: IntegrityError) -> bool:
    return "unique" in str(exc.orig).lower()


def _normalize_code(value: str) -> str:
    return value.strip().upper()


def build_router(
    entity: str,
    create_model: type[BaseModel],
    update_model: type[BaseModel],
    response_model: type[BaseModel],
    filters: Optional[dict[str, Callable[[str], str]]] = None,
) -> APIRouter:
    """Return an APIRouter with the five CRUD routes for entity.

    filters maps a query parameter of the list route to the normalizer applied
    to its value before the exact-match lookup.
    """
    defn = get_entity(entity)
    non_nullable = {name for name, info in create_model.model_fields.items() if info.is_required()}
    non_nullable |= {col.name for col in defn.table.columns if not col.nullable} - _MANAGED
    router = APIRouter(prefix=f"/{entity}", tags=[entity], dependencies=[Depends(get_identity)])

    def to_response(registry: RegistryStore, record: Any, expand: list[str]) -> BaseModel:
        data = asdict(record)
        if expand:
            data = expand_record(registry, data, expand, defn.references)
        return response_model.model_validate(data)

    @router.post("", response_model=response_model, status_code=201, name=f"create_{entity}")
    def create_record(request: Request, body: create_model) -> BaseModel:
        registry: RegistryStore = request.app.state.registry
        values = body.model_dump()
        validate_write(registry, entity, values)
        try:
            record_id = registry.create_record(entity, defn.model(**values))
        except IntegrityError as exc:
            if not _is_unique_violation(exc):
                raise
            # A concurrent writer took a natural key between the check and the insert
            raise Conflict(f"A {entity} with these values already exists.") from exc
        logger.info("Created %s %s", entity, record_id)
        return to_response(registry, registry.get_record(entity, record_id), [])

    @router.get("", response_model=list[response_model], name=f"list_{entity}")
    def list_records(
        request: Request,
        skip: int = Query(0, ge=0),
        limit: int = Query(100, ge=1, le=1000),
        expand: Optional[str] = None,
    ) -> list[BaseModel]:
        registry: RegistryStore = request.app.state.registry
        fields = parse_expand(expand, defn.references)
        where: dict[str, str] = {}
        for name, normalize in (filters or {}).items():
            value = request.query_params.get(name)
            if value is not None:
                where[name] = normalize(value)
        records = registry.list_records(entity, skip=skip, limit=limit, **where)
        return [to_response(registry, r, fields) for r in records]

    @router.get("/{record_id}", response_model=response_model, name=f"get_{entity}")
    def get_record(
        request: Request,
        record_id: str = Path(pattern=OBJECT_ID_PATTERN),
        expand: Optional[str] = None,
    ) -> BaseModel:
        registry: RegistryStore = request.app.state.registry
        fields = parse_expand(expand, defn.references)
        return to_response(registry, ensure_exists(registry, entity, record_id), fields)

    @router.put("/{record_id}", response_model=response_model, name=f"update_{entity}")
    def update_record(
        request: Request,
        body: update_model,
        record_id: str = Path(pattern=OBJECT_ID_PATTERN),
    ) -> BaseModel:
        registry: RegistryStore = request.app.state.registry
        existing = ensure_exists(registry, entity, record_id)

        changes = body.model_dump(exclude_unset=True)
        for field in sorted(non_nullable & changes.keys()):
            if changes[field] is None:
                raise ValidationFailed(f"{field} cannot be null.", details={"field": field})

        if changes:
            validate_write(registry, entity, changes, exclude_id=existing.id)
            try:
                registry.update_record(entity, existing.id, **changes)
            except IntegrityError as exc:
                if not _is_unique_violation(exc):
                    raise
                raise Conflict(f"A {entity} with these values already exists.") from exc
            logger.info("Updated %s %s fields=%s", entity, existing.id, sorted(changes))
        return to_response(registry, ensure_exists(registry, entity, existing.id), [])

    @router.delete("/{record_id}", response_model=MessageResponse, name=f"delete_{entity}")
    def delete_record(request: Request, record_id: str = Path(pattern=OBJECT_ID_PATTERN)) -> MessageResponse:
        registry: RegistryStore = request.app.state.registry
        guard: ReferentialGuard = request.app.state.guard
        existing = ensure_exists(registry, entity, record_id)
        guard.check_delete(entity, existing.id)
        registry.delete_record(entity, existing.id)
        logger.info("Deleted %s %s", entity, existing.id)
        return MessageResponse(message="Deleted successfully")

    return router


routers: list[APIRouter] = [
    build_router(
        "role",
        models.RoleCreate,
        models.RoleUpdate,
        models.RoleResponse,
        filters={"code": _normalize_code, "name": str.strip},
    ),
    build_router("area", models.AreaCreate, models.AreaUpdate, models.AreaResponse),
    build_router("country", models.CountryCreate, models.CountryUpdate, models.CountryResponse),
    build_router("company", models.CompanyCreate, models.CompanyUpdate, models.CompanyResponse),
    build_router("site", models.SiteCreate, models.SiteUpdate, models.SiteResponse),
    build_router("activity", models.ActivityCreate, models.ActivityUpdate, models.ActivityResponse),
    build_router("businessunit", models.BusinessUnitCreate, models.BusinessUnitUpdate, models.BusinessUnitResponse),
    build_router("assessor", models.AssessorCreate, models.AssessorUpdate, models.AssessorResponse),
    build_router("privilege", models.PrivilegeCreate, models.PrivilegeUpdate, models.PrivilegeResponse),
    build_router("language", models.LanguageCreate, models.LanguageUpdate, models.LanguageResponse),
]
