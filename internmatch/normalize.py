from typing import Optional


def normalize_text(s: str) -> str:
    return " ".join(s.strip().lower().split())


REMOTE_SYNS = {"remote", "wfh", "work from home", "fully remote", "virtual"}
EITHER_SYNS = {"either", "hybrid", "flexible", "any", "both"}
ONSITE_SYNS = {"onsite", "on-site", "on site", "in office", "in-office", "office"}

LOCAL_SYNS = {"local", "district", "nearby"}
STATE_SYNS = {"state", "regional"}
ANY_SYNS = {"any", "anywhere", "national", "pan india"}


def normalize_work_type(work_type: Optional[str], default: str = "either") -> Optional[str]:
    """Map free-form work type onto onsite/remote/either. Unknown values return None."""
    if work_type is None or not work_type.strip():
        return default
    wt = normalize_text(work_type)
    if wt in REMOTE_SYNS:
        return "remote"
    if wt in EITHER_SYNS:
        return "either"
    if wt in ONSITE_SYNS:
        return "onsite"
    return None


def normalize_distance_pref(pref: Optional[str], default: str = "any") -> Optional[str]:
    """Map free-form distance preference onto local/state/any. Unknown values return None."""
    if pref is None or not pref.strip():
        return default
    p = normalize_text(pref)
    if p in LOCAL_SYNS:
        return "local"
    if p in STATE_SYNS:
        return "state"
    if p in ANY_SYNS:
        return "any"
    return None


def normalize_sector(sector: str) -> str:
    return normalize_text(sector)
