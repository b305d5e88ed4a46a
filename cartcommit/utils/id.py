import secrets
import time
from typing import Optional


def uuid7(now_ms: Optional[int] = None) -> str:
    """Time-ordered UUIDv7 string.

    Audit records sort by creation without a separate sequence column.
    """
    ms = now_ms if now_ms is not None else time.time_ns() // 1_000_000

    uuid_int = (ms & 0xFFFFFFFFFFFF) << 80
    uuid_int |= 0x7 << 76
    uuid_int |= secrets.randbits(12) << 64
    uuid_int |= 0x2 << 62
    uuid_int |= secrets.randbits(62)

    h = f"{uuid_int:032x}"
    return f"{h[:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:]}"


def new_audit_id() -> str:
    return f"pr_{uuid7()}"
