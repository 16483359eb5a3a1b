from sqlalchemy import Column, Integer, String, ForeignKey, Boolean, DateTime, Text, Float, Date, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base
import enum
import uuid


def _uuid() -> str:
    return str(uuid.uuid4())


# --- ENUMS ---
class TipoCliente(str, enum.Enum):
    CLIENTE = "cliente"
    EMPRESA = "empresa"

class EstadoComprobante(str, enum.Enum):
    PENDIENTE = "pendiente"
    APROBADO = "aprobado"
    RECHAZADO = "rechazado"

class EstadoPago(str, enum.Enum):
    PENDIENTE = "pendiente"
    PAGADO = "pagado"
    CANCELADO = "cancelado"


# --- CLIENTES ---
class Usuario(Base):
    """Cliente persona natural (tipo_cliente = 'cliente')"""
    __tablename__ = "usuarios"

    id = Column(String, primary_key=True, default=_uuid)
    nombre = Column(String, nullable=False)
    cedula = Column(String, index=True)
    correo = Column(String)

    modo_pago = Column(Boolean, default=False, nullable=False)
    fecha_activacion_modo_pago = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Empresa(Base):
    """Cliente empresa (tipo_cliente = 'empresa')"""
    __tablename__ = "empresas"

    id = Column(String, primary_key=True, default=_uuid)
    nombre = Column(String, nullable=False)
    cedula = Column(String, index=True)
    correo = Column(String)

    modo_pago = Column(Boolean, default=False, nullable=False)
    fecha_activacion_modo_pago = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class GrupoEmpresa(Base):
    """Grupo de empresas que paga con un solo comprobante de la empresa principal"""
    __tablename__ = "grupos_empresas"

    id = Column(String, primary_key=True, default=_uuid)
    nombre = Column(String, nullable=False)
    empresa_principal_id = Column(String, ForeignKey("empresas.id"), nullable=False, unique=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    empresa_principal = relationship("Empresa")
    miembros = relationship("GrupoEmpresaMiembro", back_populates="grupo", cascade="all, delete-orphan")


class GrupoEmpresaMiembro(Base):
    __tablename__ = "grupos_empresas_miembros"

    id = Column(Integer, primary_key=True)
    grupo_id = Column(String, ForeignKey("grupos_empresas.id"), nullable=False)
    empresa_id = Column(String, ForeignKey("empresas.id"), nullable=False)

    grupo = relationship("GrupoEmpresa", back_populates="miembros")

    __table_args__ = (
        UniqueConstraint("grupo_id", "empresa_id", name="uq_grupo_empresa_miembro"),
    )


# --- COMPROBANTES Y REPORTES ---
class PaymentReceipt(Base):
    """
    Comprobante de pago subido por el cliente para un mes de facturación.
    Se crea en estado 'pendiente'; un revisor lo aprueba o rechaza.
    """
    __tablename__ = "payment_receipts"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, nullable=False, index=True)
    tipo_cliente = Column(String(10), nullable=False)  # cliente | empresa

    mes_pago = Column(String(7), nullable=False)  # YYYY-MM
    monto_declarado = Column(Float, nullable=True)

    estado = Column(String(20), default=EstadoComprobante.PENDIENTE.value, nullable=False)
    nota_revision = Column(Text, nullable=True)

    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(String, nullable=True)

    __table_args__ = (
        Index("ix_payment_receipts_cliente", "user_id", "tipo_cliente", "estado"),
    )


class HistorialReporte(Base):
    """Evento de reporte enviado al cliente. La fecha del último define el mes activo."""
    __tablename__ = "historial_reportes"

    id = Column(Integer, primary_key=True)
    cliente_id = Column(String, nullable=False, index=True)
    tipo_cliente = Column(String(10), nullable=False)
    fecha = Column(String, nullable=False)  # YYYY-MM-DD o ISO datetime
    descripcion = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


# --- LIBRO DE COBROS ---
class Caso(Base):
    __tablename__ = "casos"

    id = Column(String, primary_key=True, default=_uuid)
    id_cliente = Column(String, nullable=False, index=True)
    nombre = Column(String)
    expediente = Column(String)


class TrabajoPorHora(Base):
    __tablename__ = "trabajos_por_hora"

    id = Column(Integer, primary_key=True)
    id_cliente = Column(String, nullable=True, index=True)  # clientes persona
    caso_asignado = Column(String, ForeignKey("casos.id"), nullable=True)  # empresas
    fecha = Column(Date, nullable=False)
    duracion = Column(String)  # "1:30" o "1.5"
    total_cobro = Column(Float, default=0)
    estado_pago = Column(String(20), default=EstadoPago.PENDIENTE.value)


class Gasto(Base):
    __tablename__ = "gastos"

    id = Column(Integer, primary_key=True)
    id_cliente = Column(String, nullable=False, index=True)
    producto = Column(String)
    fecha = Column(Date, nullable=False)
    total_cobro = Column(Float, default=0)
    estado_pago = Column(String(20), default=EstadoPago.PENDIENTE.value)


class ServicioProfesional(Base):
    __tablename__ = "servicios_profesionales"

    id = Column(Integer, primary_key=True)
    id_cliente = Column(String, nullable=False, index=True)
    fecha = Column(Date, nullable=False)
    total = Column(Float, default=0)
    estado_pago = Column(String(20), default=EstadoPago.PENDIENTE.value)


class Solicitud(Base):
    """Solicitud de servicio. Las de modalidad 'mensualidad' se cobran por cuotas."""
    __tablename__ = "solicitudes"

    id = Column(String, primary_key=True, default=_uuid)
    id_cliente = Column(String, nullable=False, index=True)
    titulo = Column(String)
    modalidad_pago = Column(String)  # "Mensualidad", "Pago único", ...

    monto_por_cuota = Column(Float, default=0)
    costo_neto = Column(Float, default=0)
    se_cobra_iva = Column(Boolean, default=False)
    monto_iva = Column(Float, nullable=True)
    monto_pagado = Column(Float, default=0)
    saldo_pendiente = Column(Float, default=0)

    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class InvoicePaymentDeadline(Base):
    """Plazo de pago de la factura mensual de un cliente"""
    __tablename__ = "invoice_payment_deadlines"

    id = Column(Integer, primary_key=True)
    mes_factura = Column(String(7), nullable=False)  # YYYY-MM
    client_id = Column(String, nullable=False)
    client_type = Column(String(10), nullable=False)
    estado_pago = Column(String(20), default=EstadoPago.PENDIENTE.value)
    fecha_pago = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("mes_factura", "client_id", "client_type", name="uq_factura_cliente_mes"),
    )
