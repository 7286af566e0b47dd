"""
Agent Services - Shared infrastructure services.

- database: PostgreSQL pool manager with in-memory fallback signalling
- redis_client: Redis connection manager with health checks and fallback
- admin_auth: JWT verification for admin endpoints and sockets
- mailer: SMTP delivery for transcript forwarding
"""

from .redis_client import RedisManager, get_redis
from .database import DatabaseManager, get_database

__all__ = ["RedisManager", "get_redis", "DatabaseManager", "get_database"]
