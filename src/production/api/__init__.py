from production.api.routes import inbound_router, inventory_router, jobs_router, outbound_router, trail_router

__all__ = ["jobs_router", "inbound_router", "outbound_router", "inventory_router", "trail_router"]
