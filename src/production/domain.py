"""Production bounded context: manufacturing, receiving, stock and fulfillment.

A single domain hosts every state machine of the engine so that a transition
and its ledger effects (stocking on inspection, reservation on outbound
creation) commit inside one Unit of Work.
"""

from protean.domain import Domain

from production.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

production = Domain(name="production")
