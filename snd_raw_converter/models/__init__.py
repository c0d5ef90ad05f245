from .calibration import CalibrationParams, ChargeKey, TimeKey, ZERO_PARAMS
from .catalog import RunConfigCatalog
from .hits import Cluster, FibreHit, MuonHit, RawEvent, RawHit
from .mapping import BoardMapping, PlaneOffset
from .profile import ConverterProfile

__all__ = [
    "CalibrationParams",
    "ChargeKey",
    "TimeKey",
    "ZERO_PARAMS",
    "RunConfigCatalog",
    "Cluster",
    "FibreHit",
    "MuonHit",
    "RawEvent",
    "RawHit",
    "BoardMapping",
    "PlaneOffset",
    "ConverterProfile",
]
