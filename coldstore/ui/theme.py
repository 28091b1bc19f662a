import pandas as pd

from coldstore.core.constants import EXPIRY_EXPIRED, EXPIRY_SOON, LOT_HOLD

EXPIRY_STYLES = {
    EXPIRY_EXPIRED: "background-color: #fde2e1; color: #9b1c1c",
    EXPIRY_SOON: "background-color: #fef3c7; color: #92400e",
}
HOLD_STYLE = "background-color: #e0e7ff; color: #3730a3"

OCCUPANCY_COLORS = {
    "empty": "#f3f4f6",
    "low": "#d1fae5",
    "medium": "#fde68a",
    "high": "#fca5a5",
}


def highlight_stock(df: pd.DataFrame):
    """Colour lot rows by expiry class; lots on hold get their own colour."""

    def _row_style(row: pd.Series):
        if row.get("status") == LOT_HOLD:
            style = HOLD_STYLE
        else:
            style = EXPIRY_STYLES.get(row.get("expiry_status"), "")
        return [style] * len(row)

    return df.style.apply(_row_style, axis=1)


def occupancy_tile(slot: str, label: str, level: str) -> str:
    colour = OCCUPANCY_COLORS.get(level, OCCUPANCY_COLORS["empty"])
    return (
        f"<div style='background:{colour};border-radius:6px;padding:6px;"
        f"margin-bottom:6px;text-align:center'><b>{slot}</b><br/>"
        f"<small>{label}</small></div>"
    )
