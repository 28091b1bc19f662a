# coldstore/core/constants.py

# ─────────────────────────────────────────────────────────
# TRANSACTION TYPE CONSTANTS
# ─────────────────────────────────────────────────────────
TX_IN = "IN"
TX_OUT = "OUT"
TX_SHIFT = "SHIFT"
TX_STATUS_CHANGE = "STATUS_CHANGE"
ALL_TX_TYPES = [TX_IN, TX_OUT, TX_SHIFT, TX_STATUS_CHANGE]

# ─────────────────────────────────────────────────────────
# LOT STATUS CONSTANTS
# ─────────────────────────────────────────────────────────
LOT_AVAILABLE = "AVAILABLE"
LOT_HOLD = "HOLD"
ALL_LOT_STATUSES = [LOT_AVAILABLE, LOT_HOLD]

# ─────────────────────────────────────────────────────────
# ROLE CONSTANTS
# ─────────────────────────────────────────────────────────
ROLE_ADMIN = "ADMIN"
ROLE_USER = "USER"
ROLE_VIEWER = "VIEWER"
ALL_ROLES = [ROLE_ADMIN, ROLE_USER, ROLE_VIEWER]

# ─────────────────────────────────────────────────────────
# PENDING REQUEST CONSTANTS
# ─────────────────────────────────────────────────────────
REQUEST_IN = "IN"
REQUEST_OUT = "OUT"
REQUEST_STATUS_PENDING = "PENDING"

# ─────────────────────────────────────────────────────────
# EXPIRY CLASSIFICATION
# ─────────────────────────────────────────────────────────
EXPIRY_EXPIRED = "EXPIRED"
EXPIRY_SOON = "EXPIRING_SOON"
EXPIRY_NORMAL = "NORMAL"
EXPIRY_WARNING_DAYS = 30

# ─────────────────────────────────────────────────────────
# STORE TABLES AND ROW KEYS
# ─────────────────────────────────────────────────────────
TABLE_STOCK = "stock"
TABLE_TRANSACTIONS = "transactions"
TABLE_PENDING = "pending_requests"
TABLE_ITEM_CODES = "item_codes"
TABLE_USERS = "users"

TABLE_KEYS = {
    TABLE_STOCK: "id",
    TABLE_TRANSACTIONS: "id",
    TABLE_PENDING: "id",
    TABLE_ITEM_CODES: "code",
    TABLE_USERS: "username",
}

EVENT_INSERT = "INSERT"
EVENT_UPDATE = "UPDATE"
EVENT_DELETE = "DELETE"

# ─────────────────────────────────────────────────────────
# QUANTITY / FORM LIMITS
# ─────────────────────────────────────────────────────────
# Remaining quantities at or below this are treated as zero.
EPSILON = 0.0001
MAX_FORM_ROWS = 10

# ─────────────────────────────────────────────────────────
# STORAGE LAYOUT
# ─────────────────────────────────────────────────────────
# Slots are named <rack><level>-<position>, e.g. "A1-03".
STORAGE_RACKS = ["A", "B", "C", "D", "E", "F"]
STORAGE_LEVELS = 3
STORAGE_POSITIONS = 4
STORAGE_LOCATIONS = [
    f"{rack}{level}-{position:02d}"
    for rack in STORAGE_RACKS
    for level in range(1, STORAGE_LEVELS + 1)
    for position in range(1, STORAGE_POSITIONS + 1)
]

# ─────────────────────────────────────────────────────────
# UI PLACEHOLDER CONSTANTS
# ─────────────────────────────────────────────────────────
PLACEHOLDER_SELECT_ITEM_CODE = "-- Select Item Code --"
PLACEHOLDER_SELECT_LOCATION = "-- Select Location --"
PLACEHOLDER_SELECT_STOCK = "Select an item..."
