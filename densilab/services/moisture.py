from densilab.services.validators import mean_of_positive


def compute_moisture(det):
    """Moisture content (%) of one capsule determination, 2 decimals."""
    if det.dry_plus_tare <= det.tare:
        return 0.0
    pct = det.water / det.dry_soil * 100.0
    return round(pct, 2)


def average_moisture(dets):
    """
    Mean of the valid (> 0) determinations only. A bad capsule reading shows
    up as 0 on its own row but does not pull the average down.
    """
    return round(mean_of_positive([compute_moisture(d) for d in dets]), 2)
