from datetime import datetime, timedelta
from typing import Optional
import logging
import re

from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from bodega.config.settings import settings
from bodega.core.exceptions import InvalidCredentials, PermissionDenied, DomainError
from bodega.shared.database.models import User
from bodega.shared.schemas.common import Role, SupervisorCredentials

logger = logging.getLogger(__name__)

# Password context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

PIN_PATTERN = re.compile(r"^\d{4,6}$")
SUPERVISOR_ROLES = (Role.SUPERVISOR.value, Role.ADMIN.value)


class AuthService:
    """Servicio de autenticación"""

    @staticmethod
    def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
        """Verificar contraseña (o PIN) contra su hash bcrypt"""
        if not plain_password or not hashed_password:
            return False
        try:
            encoded_password = plain_password.encode('utf-8')[:72].decode('utf-8', 'ignore')
            return pwd_context.verify(encoded_password, hashed_password)
        except ValueError as e:
            logger.warning(f"Hash inválido al verificar contraseña: {str(e)}")
            return False

    @staticmethod
    def get_password_hash(password: str) -> str:
        """Generar hash de contraseña"""
        encoded_password = password.encode('utf-8')[:72].decode('utf-8', 'ignore')
        return pwd_context.hash(encoded_password)

    @staticmethod
    def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Crear token de acceso"""
        to_encode = data.copy()

        if expires_delta:
            expire = datetime.utcnow() + expires_delta
        else:
            expire = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)

        to_encode.update({"exp": expire})

        if "user_id" not in to_encode:
            raise ValueError("user_id es requerido en el token")

        return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

    @staticmethod
    def verify_token(token: str) -> Optional[dict]:
        """Verificar y decodificar token"""
        try:
            return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        except JWTError:
            return None

    @staticmethod
    def token_for_user(user: User) -> str:
        return AuthService.create_access_token({
            "user_id": user.id,
            "email": user.email,
            "role": user.role
        })


class SupervisorVerifier:
    """
    Verificador de credenciales de supervisor.

    Acepta el PIN (4 a 6 dígitos) de cualquier SUPERVISOR/ADMIN activo con PIN
    configurado, o email + contraseña de un SUPERVISOR/ADMIN. Devuelve el usuario
    que co-firma; el núcleo solo registra su identidad.
    """

    def __init__(self, db: Session):
        self.db = db

    def _supervisors(self):
        return self.db.query(User).filter(
            User.role.in_(SUPERVISOR_ROLES),
            User.is_active.is_(True)
        )

    def verify_pin(self, pin: str) -> User:
        if not pin or not PIN_PATTERN.match(pin):
            raise DomainError("PIN inválido")

        candidates = self._supervisors().filter(User.pin_hash.isnot(None)).all()
        if not candidates:
            raise DomainError("No hay supervisores con PIN configurado")

        for candidate in candidates:
            if AuthService.verify_password(pin, candidate.pin_hash):
                logger.info(f"PIN verificado para supervisor {candidate.id}")
                return candidate

        raise InvalidCredentials("PIN incorrecto")

    def verify_password(self, email: str, password: str) -> User:
        user = self.db.query(User).filter(User.email == email).first()
        if not user or not AuthService.verify_password(password, user.password_hash):
            raise InvalidCredentials("Credenciales de supervisor inválidas")
        if not user.is_active:
            raise InvalidCredentials("Supervisor inactivo")
        if user.role not in SUPERVISOR_ROLES:
            raise PermissionDenied(
                f"El usuario {user.email} no puede autorizar operaciones",
                {"role": user.role}
            )
        return user

    def resolve(self, credentials: Optional[SupervisorCredentials]) -> Optional[User]:
        """Resolver la co-firma enviada en la petición (None si no viene)"""
        if credentials is None:
            return None
        if credentials.supervisor_pin:
            return self.verify_pin(credentials.supervisor_pin)
        if credentials.supervisor_email and credentials.supervisor_password:
            return self.verify_password(credentials.supervisor_email, credentials.supervisor_password)
        return None

    def set_pin(self, user: User, pin: str, current_password: str):
        if user.role not in SUPERVISOR_ROLES:
            raise PermissionDenied("Solo supervisores y administradores pueden configurar PIN", {"role": user.role})
        if not PIN_PATTERN.match(pin or ""):
            raise DomainError("El PIN debe ser de 4 a 6 dígitos numéricos")
        if not AuthService.verify_password(current_password, user.password_hash):
            raise InvalidCredentials("Contraseña incorrecta")

        user.pin_hash = AuthService.get_password_hash(pin)
        self.db.commit()
        logger.info(f"PIN configurado para usuario {user.id}")

    def clear_pin(self, user: User, current_password: str):
        if not AuthService.verify_password(current_password, user.password_hash):
            raise InvalidCredentials("Contraseña incorrecta")
        user.pin_hash = None
        self.db.commit()
        logger.info(f"PIN eliminado para usuario {user.id}")
