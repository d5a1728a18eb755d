"""Internal constants shared across the library."""

BASE_URL = "http://localhost:8089"
USER_AGENT = "pylocsync"
DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_REQUEST_TIMEOUT = 10.0

# ------------------------------------------------------------------
# Registry endpoints
# ------------------------------------------------------------------

LOCATIONS_PATH = "/locations"
ADD_LOCATION_PATH = "/addLocation"
UPDATE_DRIVER_LOCATION_PATH = "/updateDriverLocation"
NEAREST_DRIVER_PATH = "/nearest-driver"

# ------------------------------------------------------------------
# User-visible messages
# ------------------------------------------------------------------

MSG_REQUIRED = "ID and location are required"
MSG_NOT_UNIQUE = "ID must be unique"
MSG_SAVE_FAILED = "Failed to save location."
MSG_DRIVER_UPDATE_FAILED = "Failed to update driver location."
MSG_LOAD_FAILED = "Failed to load locations. Please check the backend."
MSG_NO_DRIVERS = "No drivers found."
