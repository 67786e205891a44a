"""
crudcore - Query translation and CRUD orchestration for FastAPI services.

This package turns list-request query strings into store-agnostic find
specifications and runs create/read/update/delete operations through a
lifecycle hook pipeline, with offset and cursor pagination, soft deletion,
bulk writes and a uniform response envelope.

Usage:
    from crudcore import CrudOptions, CrudService, SQLAlchemyStore

    service = CrudService(SQLAlchemyStore(User, session), CrudOptions(exclude=["password"]))
    page = await service.index({"filter[name_start]": "A", "page[size]": "10"})
"""

__version__ = "0.1.0"

# Public API exports
from crudcore.config import BaseAppSettings, get_settings
from crudcore.crud import Author, CrudOptions, CrudService, LifecycleHooks, Method, RouteOptions
from crudcore.db import InMemoryStore, RecordStore, SQLAlchemyStore
from crudcore.errors import AppError, setup_errors
from crudcore.logging import get_logger
from crudcore.query import FindSpec, QueryConverter, QueryParser
from crudcore.schemas import CrudResponse, ErrorResponse
