"""
Dependencias de autenticación para FastAPI.

La emisión de tokens y la gestión de usuarios pertenecen al servicio de
identidad; aquí solo se verifica el bearer JWT y se arma el contexto.
"""
from uuid import UUID
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.modules.auth.schemas import AuthContext
from app.modules.auth.utils import verify_token

# Security scheme
security = HTTPBearer()


class AuthDependencies:
    """Dependencias de autenticación reutilizables."""

    @staticmethod
    def get_auth_context(
        request: Request,
        credentials: HTTPAuthorizationCredentials = Depends(security)
    ) -> AuthContext:
        """
        Obtener contexto de autenticación desde el token JWT.
        El tenant sale del token de contexto o del header X-Company-ID.
        """
        payload = verify_token(credentials.credentials)

        try:
            user_id = UUID(str(payload["sub"]))
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )

        tenant_id = None
        if payload.get("type") == "context":
            tenant_id = payload.get("tenant_id")
        else:
            tenant_id = getattr(request.state, "tenant_id", None)

        try:
            tenant_uuid = UUID(str(tenant_id)) if tenant_id else None
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid company ID"
            )

        return AuthContext(
            user_id=user_id,
            tenant_id=tenant_uuid,
            user_role=payload.get("user_role")
        )


# Instancias de dependencias
get_auth_context = AuthDependencies.get_auth_context
