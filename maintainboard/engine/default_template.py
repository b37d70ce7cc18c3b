"""Built-in maintenance dashboard template, seeded on first start."""

from ..auth.capabilities import (
    CREATE_MAINTENANCE_REQUESTS,
    CREATE_WORK_ORDERS,
    VIEW_ASSETS,
    VIEW_LOCATIONS,
    VIEW_MAINTENANCE,
    VIEW_METRICS,
    VIEW_NOTIFICATIONS,
)

DEFAULT_TEMPLATE_ID = "maintenance_default"

DEFAULT_TEMPLATE = {
    "id": DEFAULT_TEMPLATE_ID,
    "layout": "grid",
    "columns": 12,
    "rowHeight": 60,
    "margin": [10, 10],
    "containerPadding": [10, 10],
    "responsive": True,
    "breakpoints": [
        {"name": "lg", "pixelThreshold": 1200, "columns": 12},
        {"name": "md", "pixelThreshold": 996, "columns": 10},
        {"name": "sm", "pixelThreshold": 768, "columns": 6},
        {"name": "xs", "pixelThreshold": 480, "columns": 4},
        {"name": "xxs", "pixelThreshold": 0, "columns": 2},
    ],
    "widgets": [
        {
            "id": "asset_summary",
            "type": "asset_summary",
            "title": "Asset Summary",
            "position": {"x": 0, "y": 0, "w": 6, "h": 4},
            "config": {"groupBy": "status", "showTotal": True},
            "permissions": [VIEW_ASSETS],
        },
        {
            "id": "maintenance_schedule",
            "type": "maintenance_schedule",
            "title": "Upcoming Maintenance",
            "position": {"x": 6, "y": 0, "w": 6, "h": 4},
            "config": {"daysAhead": 30, "includeOverdue": True},
            "permissions": [VIEW_MAINTENANCE],
        },
        {
            "id": "recent_notifications",
            "type": "recent_notifications",
            "title": "Recent Notifications",
            "position": {"x": 0, "y": 4, "w": 8, "h": 3},
            "config": {"limit": 10},
            "permissions": [VIEW_NOTIFICATIONS],
        },
        {
            "id": "quick_actions",
            "type": "quick_actions",
            "title": "Quick Actions",
            "position": {"x": 8, "y": 4, "w": 4, "h": 3},
            "config": {
                "actions": [
                    {"id": "new_work_order", "label": "New Work Order", "route": "/work-orders/new"},
                    {"id": "new_request", "label": "Request Maintenance", "route": "/maintenance-requests/new"},
                    {"id": "scan_asset", "label": "Scan Asset QR", "route": "/assets/scan"},
                ],
            },
            "permissions": [CREATE_WORK_ORDERS, CREATE_MAINTENANCE_REQUESTS],
            "resizable": False,
        },
        {
            "id": "location_status",
            "type": "location_status",
            "title": "Location Status",
            "position": {"x": 0, "y": 7, "w": 6, "h": 4},
            "config": {"showMap": False},
            "permissions": [VIEW_LOCATIONS],
        },
        {
            "id": "metrics_chart",
            "type": "metrics_chart",
            "title": "Work Order Completion",
            "position": {"x": 6, "y": 7, "w": 6, "h": 4},
            "config": {"chartType": "line", "metric": "work_order_completion_rate", "periodDays": 7},
            "permissions": [VIEW_METRICS],
        },
        {
            "id": "maintenance_compliance",
            "type": "metrics_chart",
            "title": "Maintenance Compliance",
            "position": {"x": 0, "y": 11, "w": 12, "h": 4},
            "config": {"chartType": "bar", "metric": "maintenance_compliance_rate", "periodDays": 30},
            "permissions": [VIEW_METRICS, VIEW_MAINTENANCE],
            "visible": False,
        },
    ],
    "themes": {
        "light": {"primaryColor": "#1f6feb", "backgroundColor": "#ffffff", "textColor": "#1f2328"},
        "dark": {"primaryColor": "#58a6ff", "backgroundColor": "#0d1117", "textColor": "#e6edf3"},
        "high_contrast": {
            "primaryColor": "#ffff00", "backgroundColor": "#000000", "textColor": "#ffffff",
            "density": "compact",
        },
    },
    "settings": {
        "autoSave": True,
        "saveInterval": 2000,
        "allowWidgetRemoval": True,
        "allowWidgetAddition": True,
        "snapToGrid": True,
        "defaultTheme": "light",
    },
}
