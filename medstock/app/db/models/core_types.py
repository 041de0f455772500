import enum

class MedicineType(str, enum.Enum):
    pres = "PRES"
    otc = "OTC"
    other = "OTHER"

class Role(str, enum.Enum):
    user = "USER"
    admin = "ADMIN"

class MovementKind(str, enum.Enum):
    inbound = "inbound"
    outbound = "outbound"
