from pydantic import BaseModel, Field
from typing import Optional

class UserLogin(BaseModel):
    """Schema para login de usuario"""
    email: str = Field(..., description="Email del usuario")
    password: str = Field(..., min_length=6, description="Contraseña del usuario")

    class Config:
        json_schema_extra = {
            "example": {
                "email": "operario@bodega.mx",
                "password": "operario123"
            }
        }

class UserResponse(BaseModel):
    """Schema para respuesta de usuario"""
    id: str
    email: str
    name: str
    role: str
    is_active: bool
    has_pin: bool = False

    class Config:
        from_attributes = True

class TokenResponse(BaseModel):
    """Schema para respuesta de token"""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse

class VerifyPinRequest(BaseModel):
    pin: str = Field(..., description="PIN de supervisor o administrador")

class SupervisorInfo(BaseModel):
    id: str
    name: str
    role: str

class VerifyPinResponse(BaseModel):
    valid: bool = True
    supervisor: SupervisorInfo

class SetPinRequest(BaseModel):
    pin: str = Field(..., description="PIN de 4 a 6 dígitos")
    current_password: str = Field(..., min_length=6)

class ClearPinRequest(BaseModel):
    current_password: str = Field(..., min_length=6)

class PinStatusResponse(BaseModel):
    has_pin: bool
    can_have_pin: bool
