"""
Admin Service Routes Registry

Defines service metadata and the routes the service exposes.
"""

SERVICE_METADATA = {
    "service_name": "admin_service",
    "version": "1.0.0",
    "tags": ['admin', 'broadcast', 'settings', 'v1'],
    "capabilities": ['broadcast_messaging', 'scheduled_broadcasts', 'remote_config_sync'],
}

ROUTES = [
    {"path": "/health", "methods": ["GET"], "description": "Health check"},
    {"path": "/health/ready", "methods": ["GET"], "description": "Readiness check"},
    {"path": "/health/live", "methods": ["GET"], "description": "Liveness check"},
    {"path": "/api/v1/admin/notifications", "methods": ["GET", "POST"], "description": "List or create broadcasts"},
    {"path": "/api/v1/admin/notifications/process-scheduled", "methods": ["POST"], "description": "Send due scheduled broadcasts"},
    {"path": "/api/v1/admin/notifications/{notification_id}", "methods": ["GET"], "description": "Get broadcast"},
    {"path": "/api/v1/admin/notifications/{notification_id}/send", "methods": ["POST"], "description": "Send a draft broadcast"},
    {"path": "/api/v1/admin/settings", "methods": ["GET", "POST"], "description": "Read or update system settings"},
]


def get_route_summary():
    """Route metadata for service discovery"""
    return {
        "route_count": str(len(ROUTES)),
        "routes": ",".join([r["path"] for r in ROUTES]),
        "api_version": "v1",
        "base_path": "/api/v1/admin",
    }


__all__ = ["SERVICE_METADATA", "ROUTES", "get_route_summary"]
