"""Commerce bounded context — stock ledger and order fulfillment.

Owns per-variant stock with its append-only ledger (event-sourced Product),
the Order lifecycle (event-sourced Order), payment confirmation through the
gateway adapter, and the webhook processor that applies gateway events.
"""

import structlog
from protean.domain import Domain

commerce = Domain(name="commerce")

logger = structlog.get_logger(__name__)
