from typing import Optional

from fastapi import Header, HTTPException, status

from pharmacy_orders.domain.models import Principal, PrincipalKind


async def get_principal(
    x_principal_kind: Optional[str] = Header(default=None),
    x_principal_id: Optional[str] = Header(default=None)
) -> Principal:
    """Principal as resolved by the upstream auth layer"""
    if not x_principal_kind or not x_principal_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Please authenticate.")
    try:
        kind = PrincipalKind(x_principal_kind.lower())
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown principal kind")
    return Principal(kind=kind, id=x_principal_id)
