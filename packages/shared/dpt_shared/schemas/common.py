from enum import Enum

class RequestStatus(str, Enum):
    PENDING = "Pendiente"
    IN_PRODUCTION = "En Producción"
    READY = "Listo"
    CORRECTION = "Corrección"
    DELIVERED = "Entregado"

# Status a request has before any event is recorded
DEFAULT_STATUS = RequestStatus.PENDING

# Terminal state: stamps completed_at and starts the retention clock
TERMINAL_STATUS = RequestStatus.DELIVERED

class RequestPriority(str, Enum):
    HIGH = "Alta"
    MEDIUM = "Media"
    LOW = "Baja"
    URGENT = "Urgente"

class RequestType(str, Enum):
    NEW = "Nueva solicitud"
    CORRECTION_ADDITION = "Corrección/Añadido"
    ADJUSTMENT = "Ajuste"

class Role(str, Enum):
    PRODUCER = "Productor"
    DIRECTOR = "Dirección"
    DESIGNER = "Diseñador"
    ADVISOR = "Asesor"

# Roles that hear about every new request
PRODUCTION_ROLES = (Role.PRODUCER, Role.DIRECTOR)

class UserStatus(str, Enum):
    ACTIVE = "Activo"
    INACTIVE = "Inactivo"

class NotificationCategory(str, Enum):
    REQUEST_CREATED = "solicitud_creada"
    REQUEST_DELIVERED = "solicitud_entregada"

class CrossProjectType(str, Enum):
    CORRECTION = "correction"
    READY = "ready"
