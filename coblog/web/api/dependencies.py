"""FastAPI dependencies for database access and the per-request RPC context.

There is no authentication: the only identity is the owner id a client sends
with its mutations. Procedures receive it inside their input and pass it to
the ownership check explicitly; nothing here treats it as proof of anything.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Annotated, AsyncGenerator, Dict

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from coblog.shared.database import get_session_maker


async def get_database_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting database session.

    Provides a database session that is rolled back on error and closed when
    the request finishes. Procedures commit explicitly.

    Yields:
        AsyncSession: Database session
    """
    session_maker = get_session_maker()
    async with session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


@dataclass
class RPCContext:
    """Everything a procedure needs besides its input."""

    session: AsyncSession
    request_id: str
    metadata: Dict[str, str] = field(default_factory=dict)


async def get_request_metadata(request: Request) -> dict[str, str]:
    """Extract request metadata for logging.

    Args:
        request: FastAPI request object

    Returns:
        dict: Request metadata including IP and user agent
    """
    return {
        "client_ip": request.client.host if request.client else "unknown",
        "user_agent": request.headers.get("user-agent", "unknown"),
        "forwarded_for": request.headers.get("x-forwarded-for", "unknown"),
    }


async def get_rpc_context(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_database_session)],
    metadata: Annotated[dict, Depends(get_request_metadata)],
) -> RPCContext:
    """Build the context object handed to every procedure."""
    request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
    return RPCContext(session=session, request_id=request_id, metadata=metadata)


# Type aliases for common dependencies
DatabaseSession = Annotated[AsyncSession, Depends(get_database_session)]
Context = Annotated[RPCContext, Depends(get_rpc_context)]
