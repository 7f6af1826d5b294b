from typing import List

from fastapi import APIRouter, Depends

from access_policy import Principal
from admin_service import AdminService
from dependencies import get_admin_service, get_principal
from schemas import MessageOut, UserOut, UserUpdate

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"]
)


@router.get("/users", response_model=List[UserOut])
def list_users(principal: Principal = Depends(get_principal), service: AdminService = Depends(get_admin_service)):
    return service.list_users(principal)


@router.get("/users/{user_id}", response_model=UserOut)
def get_user(user_id: str, principal: Principal = Depends(get_principal), service: AdminService = Depends(get_admin_service)):
    return service.get_user(principal, user_id)


@router.put("/users/{user_id}", response_model=UserOut)
def update_user(user_id: str, patch: UserUpdate, principal: Principal = Depends(get_principal), service: AdminService = Depends(get_admin_service)):
    return service.update_user(principal, user_id, patch)


@router.delete("/users/{user_id}", response_model=MessageOut)
def delete_user(user_id: str, principal: Principal = Depends(get_principal), service: AdminService = Depends(get_admin_service)):
    service.delete_user(principal, user_id)
    return {"message": "User deleted successfully"}
