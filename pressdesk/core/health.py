# pressdesk/core/health.py
"""
Health check module for PressDesk.
Database connectivity and system status verification.
"""

import time
from typing import Any, Dict, Optional

from pressdesk.core.database import DatabaseManager

__all__ = [
    'check_database',
    'get_health_status',
]


# =============================================================================
# Section 1: Database Health Check
# =============================================================================

async def check_database(db: Optional[DatabaseManager]) -> Dict[str, Any]:
    """Check database connectivity, pool usage and response time."""
    start_time = time.time()

    if db is None or not db.is_connected:
        return {
            "status": "unhealthy",
            "response_time_ms": 0.0,
            "error": "database not connected"
        }

    result = await db.health_check()
    result["response_time_ms"] = round((time.time() - start_time) * 1000, 2)
    return result


# =============================================================================
# Section 2: System Health Aggregation
# =============================================================================

async def get_health_status(db: Optional[DatabaseManager],
                            extra_services: Optional[Dict[str, Dict[str, Any]]] = None) -> Dict[str, Any]:
    """Get complete system health status."""
    start_time = time.time()

    services = {"database": await check_database(db)}
    if extra_services:
        services.update(extra_services)

    overall_status = "healthy" if all(
        s.get("status") == "healthy" for s in services.values()
    ) else "unhealthy"
    total_time = round((time.time() - start_time) * 1000, 2)

    return {
        "status": overall_status,
        "timestamp": time.time(),
        "total_check_time_ms": total_time,
        "services": services
    }
