"""
Middleware de Autorización
app/middleware/autorizacion.py

Dependencies de FastAPI que leen la identidad emitida por el proveedor
de autenticación (JWT con "sub" = id y "tipo" = cliente | empresa | admin).

Uso:
    @router.patch("/api/payment-receipts")
    async def revisar(
        usuario: UsuarioActual = Depends(requiere_tipo("admin"))
    ):
        ...
"""

from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request
from jose import JWTError, jwt

from app.config import ALGORITHM, SECRET_KEY

TIPOS_VALIDOS = ("cliente", "empresa", "admin")


@dataclass(frozen=True)
class UsuarioActual:
    user_id: str
    tipo: str


async def obtener_usuario_actual(request: Request) -> UsuarioActual:
    """Extrae el usuario autenticado del request."""
    token = None

    # Opción 1: Header Authorization
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.replace("Bearer ", "", 1)

    # Opción 2: Cookie
    if not token:
        cookie = request.cookies.get("access_token")
        if cookie:
            parts = cookie.split()
            token = parts[1] if len(parts) == 2 and parts[0].lower() == "bearer" else cookie

    payload = _decodificar_token(token) if token else None
    if not payload or not payload.get("sub") or payload.get("tipo") not in TIPOS_VALIDOS:
        raise HTTPException(
            status_code=401,
            detail={"error": "No autenticado", "codigo": "AUTH_REQUIRED"}
        )

    usuario = UsuarioActual(user_id=str(payload["sub"]), tipo=payload["tipo"])
    request.state.usuario = usuario
    return usuario


def _decodificar_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


def requiere_tipo(*tipos_permitidos: str) -> Callable:
    """Verifica tipo de usuario: requiere_tipo("cliente", "empresa")"""
    async def verificar(
        usuario: UsuarioActual = Depends(obtener_usuario_actual)
    ) -> UsuarioActual:
        if usuario.tipo not in tipos_permitidos:
            raise HTTPException(
                status_code=403,
                detail={
                    "error": f"Requiere tipo: {', '.join(tipos_permitidos)}",
                    "codigo": "FORBIDDEN",
                    "tipo_actual": usuario.tipo
                }
            )
        return usuario
    return verificar


def crear_token(user_id: str, tipo: str) -> str:
    """Token firmado con la misma clave; lo usa el proveedor de identidad y los tests."""
    return jwt.encode({"sub": user_id, "tipo": tipo}, SECRET_KEY, algorithm=ALGORITHM)
