"""
Admin Service

Admin control plane microservice providing:
- Audience-targeted broadcast notifications (push + in-app records)
- Consent filtering against recipient notification preferences
- Scheduled broadcasts processed by a background poller
- System settings with Remote Config publishing for the mobile apps

Port: 8260
"""

__version__ = "1.0.0"
__service__ = "admin_service"
