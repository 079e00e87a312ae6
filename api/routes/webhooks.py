"""Order webhook endpoint.

POST /webhook/orders/create decrements each sold material's canonical record.
Responds 200 "No matching materials" or "OK"; 500 "Error" when the payload
cannot be read or any decrement fails.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from api.services import SyncServices, get_services
from connectors.shopify.shopify_client import TransportError
from core.observability.logging import get_logger
from core.observability.metrics import get_metrics
from reconciliation.errors import ReconciliationError
from reconciliation.webhook import OrderEvent

logger = get_logger(__name__)

router = APIRouter(prefix="/webhook")


@router.post("/orders/create", response_class=PlainTextResponse)
async def order_created(request: Request, services: SyncServices = Depends(get_services)):
    """Handle an orders/create webhook."""
    try:
        order = OrderEvent.model_validate(await request.json())
        result = await services.webhook_handler.handle_order(order)
    except (ValueError, ValidationError, TransportError, ReconciliationError) as e:
        logger.error(f"Webhook processing error: {e}", exc_info=True)
        get_metrics().record_webhook_failed()
        return PlainTextResponse("Error", status_code=500)

    if not result.matched:
        return PlainTextResponse("No matching materials", status_code=200)
    return PlainTextResponse("OK", status_code=200)
