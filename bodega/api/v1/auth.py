from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from bodega.config.database import get_db
from bodega.core.auth.service import AuthService, SupervisorVerifier, SUPERVISOR_ROLES
from bodega.core.auth.schemas import (
    UserLogin, TokenResponse, UserResponse, VerifyPinRequest, VerifyPinResponse,
    SupervisorInfo, SetPinRequest, ClearPinRequest, PinStatusResponse
)
from bodega.shared.database.models import User
from bodega.core.auth.dependencies import get_current_user

router = APIRouter()


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        is_active=user.is_active,
        has_pin=user.pin_hash is not None
    )


def _authenticate(db: Session, email: str, password: str) -> TokenResponse:
    user = db.query(User).filter(User.email == email).first()

    if not user or not AuthService.verify_password(password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email o contraseña incorrectos",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Usuario inactivo"
        )

    return TokenResponse(
        access_token=AuthService.token_for_user(user),
        token_type="bearer",
        user=_user_response(user)
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """
    Endpoint de login para obtener token de acceso

    **Parámetros:**
    - **username**: Email del usuario
    - **password**: Contraseña del usuario
    """
    return _authenticate(db, form_data.username, form_data.password)


@router.post("/login-json", response_model=TokenResponse)
async def login_json(
    user_login: UserLogin,
    db: Session = Depends(get_db)
):
    """
    Endpoint de login alternativo que acepta JSON

    **Body:**
    ```json
        {
            "email": "operario@bodega.mx",
            "password": "operario123"
        }
    """
    return _authenticate(db, user_login.email, user_login.password)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Obtener información del usuario actual"""
    return _user_response(current_user)


# ==================== PIN DE SUPERVISOR ====================

@router.post("/verify-pin", response_model=VerifyPinResponse)
async def verify_pin(
    request: VerifyPinRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Verificar PIN de supervisor

    El operario lo usa para obtener autorización antes de una operación escalada.
    """
    supervisor = SupervisorVerifier(db).verify_pin(request.pin)
    return VerifyPinResponse(
        valid=True,
        supervisor=SupervisorInfo(id=supervisor.id, name=supervisor.name, role=supervisor.role)
    )


@router.post("/set-pin")
async def set_pin(
    request: SetPinRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """**Permisos requeridos:** SUPERVISOR o ADMIN"""
    SupervisorVerifier(db).set_pin(current_user, request.pin, request.current_password)
    return {"success": True, "message": "PIN configurado correctamente"}


@router.delete("/pin")
async def clear_pin(
    request: ClearPinRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    SupervisorVerifier(db).clear_pin(current_user, request.current_password)
    return {"success": True, "message": "PIN eliminado"}


@router.get("/has-pin", response_model=PinStatusResponse)
async def has_pin(current_user: User = Depends(get_current_user)):
    return PinStatusResponse(
        has_pin=current_user.pin_hash is not None,
        can_have_pin=current_user.role in SUPERVISOR_ROLES
    )
