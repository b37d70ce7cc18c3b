"""Capability names carried in identity tokens and widget permission gates."""

VIEW_DASHBOARD = "view_dashboard"
VIEW_ASSETS = "view_assets"
VIEW_MAINTENANCE = "view_maintenance"
VIEW_NOTIFICATIONS = "view_notifications"
VIEW_LOCATIONS = "view_locations"
VIEW_METRICS = "view_metrics"
CREATE_WORK_ORDERS = "create_work_orders"
CREATE_MAINTENANCE_REQUESTS = "create_maintenance_requests"
MANAGE_DASHBOARDS = "manage_dashboards"

ALL_CAPABILITIES = [
    VIEW_DASHBOARD, VIEW_ASSETS, VIEW_MAINTENANCE, VIEW_NOTIFICATIONS,
    VIEW_LOCATIONS, VIEW_METRICS, CREATE_WORK_ORDERS,
    CREATE_MAINTENANCE_REQUESTS, MANAGE_DASHBOARDS,
]

# Used by the dev token script and tests; production tokens carry whatever
# the identity service resolved.
DEFAULT_ROLES = {
    "admin": {
        "description": "Full access, including publishing dashboard templates",
        "permissions": ALL_CAPABILITIES,
    },
    "maintenance_manager": {
        "description": "Plans maintenance and tracks asset health",
        "permissions": [
            VIEW_DASHBOARD, VIEW_ASSETS, VIEW_MAINTENANCE, VIEW_NOTIFICATIONS,
            VIEW_LOCATIONS, VIEW_METRICS, CREATE_WORK_ORDERS,
        ],
    },
    "technician": {
        "description": "Works maintenance tasks in the field",
        "permissions": [
            VIEW_DASHBOARD, VIEW_MAINTENANCE, VIEW_NOTIFICATIONS,
            CREATE_MAINTENANCE_REQUESTS,
        ],
    },
    "viewer": {
        "description": "Read-only asset overview",
        "permissions": [VIEW_DASHBOARD, VIEW_ASSETS],
    },
}
