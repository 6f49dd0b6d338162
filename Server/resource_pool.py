"""
LabQueue Server - Resource Pool

Tracks each workstation's state (free, held, occupied) and exposes atomic
claim/release. A claim is a conditional UPDATE that only succeeds while the
row is still in the expected state, so two concurrent callers can never
both win the same resource: the loser sees a rowcount of 0 and moves on.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func

from models.database import Resource, ResourceState
from exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def GetResource(db_session, resource_id: int) -> Resource:
    """
    Get a resource by ID

    Raises:
        NotFoundError: If no resource has this ID
    """
    resource = db_session.query(Resource).filter(Resource.resource_id == resource_id).first()
    if resource is None:
        raise NotFoundError(f"Resource {resource_id} not found")
    return resource


def ListResources(db_session, state: Optional[str] = None) -> List[Resource]:
    """
    List resources in a stable order (by ID), optionally filtered by state
    """
    query = db_session.query(Resource)
    if state is not None:
        query = query.filter(Resource.state == state)
    return query.order_by(Resource.resource_id.asc()).all()


def ListFreeResources(db_session) -> List[Resource]:
    """List free resources in a stable order"""
    return ListResources(db_session, ResourceState.FREE)


def RegisterResource(db_session, display_name: str, location: Optional[str], now: datetime) -> Resource:
    """
    Add a new workstation to the pool in the free state

    Args:
        db_session: SQLAlchemy session
        display_name: Name shown to students (e.g. 'PC-07')
        location: Optional row / room label
        now: Current time

    Returns:
        Resource: The new resource
    """
    if not display_name or not display_name.strip():
        raise ValidationError("display_name must not be empty")

    resource = Resource(
        display_name=display_name.strip(),
        location=location,
        state=ResourceState.FREE,
        created_at_utc=now
    )
    db_session.add(resource)
    db_session.flush()

    logger.info(f"Registered resource {resource.resource_id} ({resource.display_name})")
    return resource


def ClaimResource(db_session, resource_id: int, expected_state: str, new_state: str) -> bool:
    """
    Compare-and-swap a resource's state

    Args:
        db_session: SQLAlchemy session
        resource_id: Resource to transition
        expected_state: State the resource must currently be in
        new_state: State to move it to

    Returns:
        bool: True if this caller won the transition, False otherwise
    """
    updated = (
        db_session.query(Resource)
        .filter(Resource.resource_id == resource_id, Resource.state == expected_state)
        .update({Resource.state: new_state}, synchronize_session="evaluate")
    )

    if updated:
        logger.debug(f"Resource {resource_id}: {expected_state} -> {new_state}")
    return updated == 1


def ReleaseResource(db_session, resource_id: int, expected_state: str) -> bool:
    """
    Return a resource to the free state, only if it is still in expected_state

    The guard keeps a late or repeated release from freeing a resource that
    has already been handed to someone else.
    """
    released = ClaimResource(db_session, resource_id, expected_state, ResourceState.FREE)
    if not released:
        logger.warning(f"Resource {resource_id} was not {expected_state}; release skipped")
    return released


def CountResourcesByState(db_session) -> Dict[str, int]:
    """
    Count resources per state

    Returns:
        dict: {state: count} with every state present
    """
    counts = {state: 0 for state in ResourceState.ALL}
    rows = db_session.query(Resource.state, func.count(Resource.resource_id)).group_by(Resource.state).all()
    for state, count in rows:
        counts[state] = count
    return counts
