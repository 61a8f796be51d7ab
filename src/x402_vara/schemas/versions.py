from enum import Enum


class ProtocolVersion(Enum):
    V1 = 1
