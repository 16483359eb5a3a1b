import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./bufete.db")

# JWT emitido por el proveedor de identidad
SECRET_KEY = os.getenv("SECRET_KEY", "tu-clave-secreta")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# IVA por defecto para solicitudes con se_cobra_iva sin monto_iva
TASA_IVA = float(os.getenv("TASA_IVA", "0.13"))
