"""
Endpoints: Comprobantes de Pago y modo_pago
app/routers/payment_receipts.py

Admin:
  GET   /api/payment-receipts           → comprobantes + clientes con modo_pago
  PATCH /api/payment-receipts           → aprobar / rechazar
  GET   /api/payment-receipts/evaluar   → simulación de la decisión (no escribe)
  POST  /api/reset-modo-pago            → reinicio masivo
Cliente:
  GET   /api/payment-receipts/history   → mis comprobantes
  GET   /api/payment-status             → último comprobante + modo_pago
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from app.database import get_db
from app.middleware.autorizacion import UsuarioActual, requiere_tipo
from app.models import Empresa, PaymentReceipt, TipoCliente, Usuario
from app.services.aprobacion_utils import MesAnio
from app.services.aprobar_comprobante import (
    aprobar_comprobante,
    evaluar_modo_pago,
    modelo_cliente,
    rechazar_comprobante,
    reset_modo_pago,
)
from app.services.datos_pendientes import obtener_mes_activo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["payment-receipts"])

ACCIONES = ("aprobar", "rechazar")
TIPOS_CLIENTE = (TipoCliente.CLIENTE.value, TipoCliente.EMPRESA.value)

CODIGO_A_STATUS = {
    "NOT_FOUND":       404,
    "NOTA_REQUERIDA":  400,
    "ESTADO_INVALIDO": 409,
}


class RevisarComprobanteRequest(BaseModel):
    """Body del PATCH: {receiptId, action, nota}"""
    model_config = ConfigDict(populate_by_name=True)

    receipt_id: Optional[str] = Field(default=None, alias="receiptId")
    action: Optional[str] = None
    nota: Optional[str] = None


def _receipt_dict(r: PaymentReceipt) -> dict:
    return {
        "id":              r.id,
        "user_id":         r.user_id,
        "tipo_cliente":    r.tipo_cliente,
        "mes_pago":        r.mes_pago,
        "monto_declarado": r.monto_declarado,
        "estado":          r.estado,
        "nota_revision":   r.nota_revision,
        "uploaded_at":     r.uploaded_at.isoformat() if r.uploaded_at else None,
        "reviewed_at":     r.reviewed_at.isoformat() if r.reviewed_at else None,
    }


def _error(status_code: int, mensaje: str, codigo: str):
    raise HTTPException(status_code=status_code, detail={"error": mensaje, "codigo": codigo})


# ═══════════════════════════════════════════════════════════
# ADMIN
# ═══════════════════════════════════════════════════════════

@router.get("/payment-receipts")
async def listar_comprobantes(
    db: Session = Depends(get_db),
    admin: UsuarioActual = Depends(requiere_tipo("admin")),
):
    """Todos los comprobantes y los clientes que tienen modo_pago activo."""
    receipts = db.query(PaymentReceipt).order_by(PaymentReceipt.uploaded_at.desc()).all()

    usuarios = db.query(Usuario).filter(Usuario.modo_pago == True).all()
    empresas = db.query(Empresa).filter(Empresa.modo_pago == True).all()

    clientes = [
        {"id": c.id, "nombre": c.nombre, "cedula": c.cedula, "correo": c.correo,
         "modoPago": c.modo_pago, "tipo": tipo}
        for tipo, grupo in ((TipoCliente.CLIENTE.value, usuarios), (TipoCliente.EMPRESA.value, empresas))
        for c in grupo
    ]

    return {
        "success": True,
        "data": {
            "receipts": [_receipt_dict(r) for r in receipts],
            "clientesConModoPago": clientes,
        },
    }


@router.patch("/payment-receipts")
async def revisar_comprobante(
    body: RevisarComprobanteRequest,
    db: Session = Depends(get_db),
    admin: UsuarioActual = Depends(requiere_tipo("admin")),
):
    """Aprueba o rechaza un comprobante."""
    if not body.receipt_id or not body.action:
        _error(400, "receiptId y action son requeridos", "PARAMS_REQUERIDOS")

    if body.action not in ACCIONES:
        _error(400, 'action debe ser "aprobar" o "rechazar"', "ACCION_INVALIDA")

    if body.action == "aprobar":
        resultado = aprobar_comprobante(db, body.receipt_id, nota=body.nota, revisado_por=admin.user_id)
    else:
        resultado = rechazar_comprobante(db, body.receipt_id, body.nota, revisado_por=admin.user_id)

    if not resultado["success"]:
        codigo = resultado.get("codigo", "ERROR")
        _error(CODIGO_A_STATUS.get(codigo, 400), resultado["mensaje"], codigo)

    return resultado


@router.get("/payment-receipts/evaluar")
async def evaluar_comprobante(
    cliente_id: str = Query(...),
    tipo_cliente: str = Query(...),
    mes_pago: str = Query(...),
    db: Session = Depends(get_db),
    admin: UsuarioActual = Depends(requiere_tipo("admin")),
):
    """Muestra qué pasaría con modo_pago si se aprobara un comprobante de mes_pago."""
    if tipo_cliente not in TIPOS_CLIENTE:
        _error(400, "tipo_cliente debe ser 'cliente' o 'empresa'", "TIPO_INVALIDO")
    if MesAnio.parse(mes_pago) is None:
        _error(400, "mes_pago debe tener formato YYYY-MM", "MES_INVALIDO")

    evaluacion = evaluar_modo_pago(db, cliente_id, tipo_cliente, mes_pago)
    return {
        "success":          True,
        "mes_pago":         mes_pago,
        "mes_activo":       evaluacion["mes_activo"],
        "es_mes_anterior":  evaluacion["es_mes_anterior"],
        "datos_pendientes": evaluacion["datos_pendientes"].to_dict(),
        "desactivaria":     evaluacion["desactivar"],
    }


@router.post("/reset-modo-pago")
async def reiniciar_modo_pago(
    db: Session = Depends(get_db),
    admin: UsuarioActual = Depends(requiere_tipo("admin")),
):
    logger.info(f"Reinicio de modo pago solicitado por {admin.user_id}")
    return reset_modo_pago(db)


# ═══════════════════════════════════════════════════════════
# CLIENTE
# ═══════════════════════════════════════════════════════════

@router.get("/payment-receipts/history")
async def historial_comprobantes(
    db: Session = Depends(get_db),
    usuario: UsuarioActual = Depends(requiere_tipo(*TIPOS_CLIENTE)),
):
    comprobantes = db.query(PaymentReceipt).filter(
        PaymentReceipt.user_id == usuario.user_id,
        PaymentReceipt.tipo_cliente == usuario.tipo,
    ).order_by(PaymentReceipt.uploaded_at.desc()).all()

    return {"success": True, "comprobantes": [_receipt_dict(r) for r in comprobantes]}


@router.get("/payment-status")
async def estado_pago(
    db: Session = Depends(get_db),
    usuario: UsuarioActual = Depends(requiere_tipo(*TIPOS_CLIENTE)),
):
    """Último comprobante del cliente, su modo_pago y el mes que se está cobrando."""
    Modelo = modelo_cliente(usuario.tipo)
    cliente = db.query(Modelo).filter(Modelo.id == usuario.user_id).first()
    if not cliente:
        _error(404, "Cliente no encontrado", "NOT_FOUND")

    ultimo = db.query(PaymentReceipt).filter(
        PaymentReceipt.user_id == usuario.user_id,
        PaymentReceipt.tipo_cliente == usuario.tipo,
    ).order_by(PaymentReceipt.uploaded_at.desc()).first()

    return {
        "success":     True,
        "modoPago":    cliente.modo_pago,
        "mesActivo":   obtener_mes_activo(db, usuario.user_id, usuario.tipo),
        "lastReceipt": _receipt_dict(ultimo) if ultimo else None,
    }
