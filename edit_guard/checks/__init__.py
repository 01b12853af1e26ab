from .eof import EofNewlineCheck
from .ruff import RuffCheck
from .seven_bit import SevenBitCheck

ALL_CHECKS = {
    EofNewlineCheck.check_id: EofNewlineCheck,
    SevenBitCheck.check_id: SevenBitCheck,
    RuffCheck.check_id: RuffCheck,
}

__all__ = [
    "ALL_CHECKS",
    "EofNewlineCheck",
    "RuffCheck",
    "SevenBitCheck",
]
