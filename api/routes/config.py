"""Relations configuration endpoints.

Implements:
- GET /app/config - Current material -> canonical variant mapping
- POST /app/config - Replace the mapping
- POST /app/variant-titles - Display titles for variant GIDs
- POST /app/validate-variants - Which GIDs do not resolve to variants
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, RootModel, ValidationError, field_validator

from api.services import SyncServices, get_services
from connectors.shopify.shopify_client import TransportError
from core.observability.logging import get_logger
from reconciliation.errors import ConfigWriteError
from reconciliation.models import VARIANT_GID_PREFIX, Relations, is_valid_material_code

logger = get_logger(__name__)

router = APIRouter(prefix="/app")


# =============================================================================
# Request Models
# =============================================================================

class RelationsUpdate(RootModel[Dict[str, str]]):
    """Full replacement mapping as submitted by the config editor.

    Codes must already be canonical (three uppercase letters or digits) and
    every value must be a ProductVariant GID.
    """

    @field_validator("root")
    @classmethod
    def _check_entries(cls, value: Dict[str, str]) -> Dict[str, str]:
        for code, gid in value.items():
            if not is_valid_material_code(code):
                raise ValueError(f"Invalid material code: {code!r}")
            if not gid.startswith(VARIANT_GID_PREFIX):
                raise ValueError(f"Invalid variant reference for {code}: {gid!r}")
        return value

    def to_relations(self) -> Relations:
        return Relations(dict(self.root))


class VariantIdsRequest(BaseModel):
    """List of ProductVariant GIDs."""
    variants: List[str]


def _error(status_code: int, error: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error})


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


# =============================================================================
# Config
# =============================================================================

@router.get("/config")
async def get_config(services: SyncServices = Depends(get_services)):
    """Return the stored mapping (empty when unset)."""
    try:
        relations = await services.relation_store.get_relations()
    except TransportError as e:
        logger.error(f"Config GET error: {e}")
        return JSONResponse(status_code=500, content={})
    return relations.root


@router.post("/config")
async def save_config(request: Request, services: SyncServices = Depends(get_services)):
    """Validate and persist a full replacement mapping."""
    try:
        update = RelationsUpdate.model_validate(await _read_json(request))
    except ValidationError:
        return _error(400, "Invalid mapping data")

    try:
        await services.relation_store.set_relations(update.to_relations())
    except ConfigWriteError as e:
        if e.user_errors:
            return _error(400, e.user_errors)
        logger.error(f"Config POST error: {e}")
        return _error(500, str(e))
    except TransportError as e:
        logger.error(f"Config POST error: {e}")
        return _error(500, "Failed to save metafield")

    return {"success": True}


# =============================================================================
# Variant helpers
# =============================================================================

@router.post("/variant-titles")
async def variant_titles(request: Request, services: SyncServices = Depends(get_services)):
    """Map each known variant GID to "<product title> - <variant title>"."""
    try:
        body = VariantIdsRequest.model_validate(await _read_json(request))
    except ValidationError:
        return _error(400, "Missing variants array")

    try:
        variants = await services.reader.resolve_variants(body.variants)
    except TransportError as e:
        logger.error(f"variant-titles error: {e}")
        return _error(500, "Failed to fetch variant titles")

    return {gid: variant.display_title for gid, variant in variants.items()}


@router.post("/validate-variants")
async def validate_variants(request: Request, services: SyncServices = Depends(get_services)):
    """Report submitted GIDs that do not resolve to a variant."""
    try:
        body = VariantIdsRequest.model_validate(await _read_json(request))
    except ValidationError:
        return _error(400, "Missing variant list")

    try:
        variants = await services.reader.resolve_variants(body.variants)
    except TransportError as e:
        logger.error(f"validate-variants error: {e}")
        return _error(500, "Validation failed")

    return {"invalid": [gid for gid in body.variants if gid not in variants]}
