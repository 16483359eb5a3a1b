"""
Servicio: Aprobación de Comprobantes de Pago
app/services/aprobar_comprobante.py

Aprueba o rechaza un comprobante y decide si se desactiva modo_pago.
Usada por:
  1. Admin manual: PATCH /api/payment-receipts (action=aprobar|rechazar)
  2. Reinicio masivo: POST /api/reset-modo-pago

Toda la lectura de pendientes, la decisión y la escritura del flag ocurren
en la misma sesión; se hace un único commit al final.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.config import TASA_IVA
from app.models import (
    Empresa,
    EstadoComprobante,
    EstadoPago,
    GrupoEmpresa,
    InvoicePaymentDeadline,
    PaymentReceipt,
    Solicitud,
    TipoCliente,
    Usuario,
)
from app.services.aprobacion_utils import (
    SIN_PENDIENTES,
    is_older_month,
    should_deactivate_modo_pago,
)
from app.services.datos_pendientes import obtener_datos_pendientes, obtener_mes_activo

logger = logging.getLogger(__name__)


def modelo_cliente(tipo_cliente: str):
    return Empresa if tipo_cliente == TipoCliente.EMPRESA.value else Usuario


def evaluar_modo_pago(
    db: Session,
    cliente_id: str,
    tipo_cliente: str,
    mes_pago: str,
    excluir_receipt_id: Optional[str] = None,
) -> dict:
    """
    Calcula mes activo, pendientes y la decisión para un cliente. No escribe nada.

    Returns:
        dict con: mes_activo, es_mes_anterior, datos_pendientes (DatosPendientes), desactivar
    """
    mes_activo = obtener_mes_activo(db, cliente_id, tipo_cliente)
    if mes_activo:
        datos = obtener_datos_pendientes(
            db, cliente_id, tipo_cliente, mes_activo, excluir_receipt_id=excluir_receipt_id
        )
    else:
        datos = SIN_PENDIENTES

    return {
        "mes_activo":       mes_activo,
        "es_mes_anterior":  is_older_month(mes_pago, mes_activo),
        "datos_pendientes": datos,
        "desactivar":       should_deactivate_modo_pago(mes_pago, mes_activo, datos),
    }


def aprobar_comprobante(
    db: Session,
    receipt_id: str,
    nota: Optional[str] = None,
    revisado_por: str = "admin",
) -> dict:
    """
    Aprueba un comprobante y desactiva modo_pago solo si corresponde.

    Returns:
        dict con: success, mensaje, modo_pago_desactivado, mes_activo,
                  datos_pendientes, empresas_desactivadas
    """
    # ── Obtener y validar comprobante ─────────────────────────────────────────
    receipt = db.query(PaymentReceipt).filter(PaymentReceipt.id == receipt_id).first()
    if not receipt:
        return {"success": False, "mensaje": "Comprobante no encontrado", "codigo": "NOT_FOUND"}

    if receipt.estado == EstadoComprobante.APROBADO.value:
        return {"success": True, "mensaje": "Comprobante ya estaba aprobado", "ya_aprobado": True}

    if receipt.estado != EstadoComprobante.PENDIENTE.value:
        return {
            "success": False,
            "mensaje": f"Comprobante en estado '{receipt.estado}', no se puede aprobar",
            "codigo":  "ESTADO_INVALIDO",
        }

    user_id      = receipt.user_id
    tipo_cliente = receipt.tipo_cliente
    mes_pago     = receipt.mes_pago
    ahora        = datetime.now(timezone.utc)

    # ── Aprobar ───────────────────────────────────────────────────────────────
    receipt.estado        = EstadoComprobante.APROBADO.value
    receipt.reviewed_at   = ahora
    receipt.reviewed_by   = revisado_por
    receipt.nota_revision = nota or None

    # La cuota del mes queda pagada antes de contar mensualidades con saldo
    _actualizar_mensualidades(db, user_id, ahora)
    db.flush()

    # ── Decidir modo_pago ─────────────────────────────────────────────────────
    grupo = None
    if tipo_cliente == TipoCliente.EMPRESA.value:
        grupo = db.query(GrupoEmpresa).filter(GrupoEmpresa.empresa_principal_id == user_id).first()

    empresas_desactivadas = []
    if grupo:
        desactivado, evaluacion, empresas_desactivadas = _procesar_grupo(db, grupo, receipt)
    else:
        evaluacion = evaluar_modo_pago(db, user_id, tipo_cliente, mes_pago, excluir_receipt_id=receipt.id)
        desactivado = False
        if evaluacion["desactivar"]:
            desactivado = _desactivar_modo_pago(db, user_id, tipo_cliente)

    # ── Factura del mes ───────────────────────────────────────────────────────
    _marcar_factura_pagada(db, mes_pago, user_id, tipo_cliente, ahora)

    db.commit()

    datos = evaluacion["datos_pendientes"]
    if desactivado:
        mensaje = "Comprobante aprobado y modo pago desactivado"
    elif evaluacion["mes_activo"] is None:
        mensaje = "Comprobante aprobado. Sin historial de reportes: modo pago se conserva"
    else:
        mensaje = f"Comprobante aprobado. Modo pago sigue activo: hay pendientes en {evaluacion['mes_activo']}"

    logger.info(
        f"Comprobante {receipt_id} ({tipo_cliente} {user_id}, mes {mes_pago}) aprobado por "
        f"{revisado_por}; mes activo {evaluacion['mes_activo']}, pendientes={datos.tiene_datos}, "
        f"modo_pago_desactivado={desactivado}"
    )

    return {
        "success":               True,
        "mensaje":               mensaje,
        "fecha_aprobacion":      ahora.isoformat(),
        "modo_pago_desactivado": desactivado,
        "mes_activo":            evaluacion["mes_activo"],
        "es_mes_anterior":       evaluacion["es_mes_anterior"],
        "datos_pendientes":      datos.to_dict(),
        "empresas_desactivadas": empresas_desactivadas,
    }


def rechazar_comprobante(
    db: Session,
    receipt_id: str,
    nota: Optional[str],
    revisado_por: str = "admin",
) -> dict:
    """Rechaza un comprobante pendiente. modo_pago no se toca."""
    if not nota or not nota.strip():
        return {"success": False, "mensaje": "La nota de rechazo es requerida", "codigo": "NOTA_REQUERIDA"}

    receipt = db.query(PaymentReceipt).filter(PaymentReceipt.id == receipt_id).first()
    if not receipt:
        return {"success": False, "mensaje": "Comprobante no encontrado", "codigo": "NOT_FOUND"}

    if receipt.estado != EstadoComprobante.PENDIENTE.value:
        return {
            "success": False,
            "mensaje": f"Comprobante en estado '{receipt.estado}', no se puede rechazar",
            "codigo":  "ESTADO_INVALIDO",
        }

    receipt.estado        = EstadoComprobante.RECHAZADO.value
    receipt.reviewed_at   = datetime.now(timezone.utc)
    receipt.reviewed_by   = revisado_por
    receipt.nota_revision = nota.strip()
    db.commit()

    logger.info(f"Comprobante {receipt_id} rechazado por {revisado_por}: {receipt.nota_revision}")
    return {"success": True, "mensaje": "Comprobante rechazado"}


def reset_modo_pago(db: Session) -> dict:
    """Desactiva modo_pago para todos los usuarios y empresas."""
    usuarios = (
        db.query(Usuario)
        .filter(Usuario.modo_pago == True)
        .update({"modo_pago": False}, synchronize_session=False)
    )
    empresas = (
        db.query(Empresa)
        .filter(Empresa.modo_pago == True)
        .update({"modo_pago": False}, synchronize_session=False)
    )
    db.commit()

    logger.info(f"Modo pago reiniciado: {usuarios} usuarios, {empresas} empresas")
    return {
        "success":  True,
        "mensaje":  "Modo pago reiniciado exitosamente",
        "usuarios": usuarios,
        "empresas": empresas,
    }


# ═════════════════════════════════════════════════════════════════════════════
# HELPERS PRIVADOS
# ═════════════════════════════════════════════════════════════════════════════

def _procesar_grupo(db: Session, grupo: GrupoEmpresa, receipt: PaymentReceipt):
    """
    El comprobante de la empresa principal cubre a todo el grupo.
    Cada empresa se evalúa con su propio mes activo y sus propios pendientes.

    Returns:
        (principal_desactivada, evaluacion_principal, ids_desactivados)
    """
    empresa_tipo = TipoCliente.EMPRESA.value
    ids = [grupo.empresa_principal_id] + [
        m.empresa_id for m in grupo.miembros if m.empresa_id != grupo.empresa_principal_id
    ]

    evaluacion_principal = None
    desactivadas = []
    for empresa_id in ids:
        evaluacion = evaluar_modo_pago(
            db, empresa_id, empresa_tipo, receipt.mes_pago, excluir_receipt_id=receipt.id
        )
        if empresa_id == grupo.empresa_principal_id:
            evaluacion_principal = evaluacion

        if evaluacion["desactivar"] and _desactivar_modo_pago(db, empresa_id, empresa_tipo):
            desactivadas.append(empresa_id)
        elif not evaluacion["desactivar"]:
            logger.info(
                f"Grupo {grupo.nombre}: empresa {empresa_id} conserva modo pago "
                f"(mes activo {evaluacion['mes_activo']})"
            )

    principal_desactivada = grupo.empresa_principal_id in desactivadas
    return principal_desactivada, evaluacion_principal, desactivadas


def _desactivar_modo_pago(db: Session, cliente_id: str, tipo_cliente: str) -> bool:
    """Pone modo_pago = False. Retorna True si el cliente existe."""
    Modelo = modelo_cliente(tipo_cliente)
    cliente = (
        db.query(Modelo)
        .filter(Modelo.id == cliente_id)
        .with_for_update()
        .first()
    )
    if not cliente:
        logger.warning(f"No existe {tipo_cliente} {cliente_id} para desactivar modo pago")
        return False
    cliente.modo_pago = False
    return True


def _actualizar_mensualidades(db: Session, cliente_id: str, ahora: datetime) -> None:
    """
    Suma la cuota a monto_pagado de las solicitudes con modalidad mensualidad.
    Los gastos NO se incluyen en monto_pagado.
    """
    solicitudes = (
        db.query(Solicitud)
        .filter(
            Solicitud.id_cliente == cliente_id,
            Solicitud.modalidad_pago.ilike("%mensualidad%"),
        )
        .all()
    )

    for s in solicitudes:
        costo_neto = s.costo_neto or 0
        iva = 0.0
        if s.se_cobra_iva:
            iva = s.monto_iva or (costo_neto * TASA_IVA)
        total_a_pagar = costo_neto + iva

        s.monto_pagado    = (s.monto_pagado or 0) + (s.monto_por_cuota or 0)
        s.saldo_pendiente = max(0.0, total_a_pagar - s.monto_pagado)
        s.updated_at      = ahora
        logger.info(
            f"Solicitud {s.id} ({s.titulo}): pagado {s.monto_pagado:.2f} "
            f"de {total_a_pagar:.2f}, saldo {s.saldo_pendiente:.2f}"
        )


def _marcar_factura_pagada(
    db: Session, mes_pago: str, cliente_id: str, tipo_cliente: str, ahora: datetime
) -> None:
    factura = (
        db.query(InvoicePaymentDeadline)
        .filter(
            InvoicePaymentDeadline.mes_factura == mes_pago,
            InvoicePaymentDeadline.client_id == cliente_id,
            InvoicePaymentDeadline.client_type == tipo_cliente,
        )
        .first()
    )
    if not factura:
        logger.warning(f"No se encontró factura {mes_pago} para {tipo_cliente} {cliente_id}")
        return

    factura.estado_pago = EstadoPago.PAGADO.value
    factura.fecha_pago  = ahora
