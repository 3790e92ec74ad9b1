# class_registration/routers/dependencies.py
from uuid import UUID
from fastapi import Header, HTTPException, Request

from ..core.actor import Actor, Role
from ..services.registration_engine import RegistrationEngine


def get_engine(request: Request) -> RegistrationEngine:
    return request.app.state.engine


async def get_actor(
    x_actor_id: UUID = Header(...),
    x_actor_role: str = Header(...),
) -> Actor:
    """Actor resolved by the upstream auth gateway and forwarded in headers"""
    try:
        role = Role(x_actor_role)
    except ValueError:
        raise HTTPException(status_code=403, detail=f"Unknown role: {x_actor_role}")
    if role == Role.SYSTEM:
        raise HTTPException(status_code=403, detail="System role cannot be asserted by clients")
    return Actor(id=x_actor_id, role=role)
