from __future__ import annotations

from typing import Any, Dict, List


def doctor_report() -> Dict[str, Any]:
    checks: List[Dict[str, Any]] = []

    # Core import and a minimal resample round trip
    try:
        import math

        from .resampler import Resampler

        res = Resampler()
        res.push_event({"type_sets": [{"type_id": 22, "momenta": [[1.0, 0.0, 0.0, 1.0]]}], "weights": [-1.0]})
        res.push_event({"type_sets": [{"type_id": 22, "momenta": [[2.0, 0.0, 0.0, 2.0]]}], "weights": [3.0]})
        res.resample(0, math.inf)
        drained = list(res.drain())
        ok = drained == [[1.0], [1.0]]
        checks.append({"name": "cellresampler core", "ok": ok, "detail": f"drained {drained}"})
    except Exception as e:
        checks.append({"name": "cellresampler core", "ok": False, "detail": str(e)})

    # Optional deps
    try:
        import particle  # noqa: F401
        checks.append({"name": "particle (type labels)", "ok": True, "detail": "installed"})
    except ImportError:
        checks.append({"name": "particle (type labels)", "ok": True, "detail": "not installed (optional)"})

    ok_all = all(c["ok"] for c in checks)
    summary = "cellresampler doctor: OK" if ok_all else "cellresampler doctor: FAIL"

    return {"summary": summary, "checks": checks}
