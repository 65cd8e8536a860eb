from decouple import config

# Storage
DATABASE_PATH = config('PHOTOWRAP_DATABASE_PATH', default='photowrap.db')
ALGORITHM_VERSION = '1.0.0'

# Logging
LOG_LEVEL = config('PHOTOWRAP_LOG_LEVEL', default='INFO')
LOG_FILE = config('PHOTOWRAP_LOG_FILE', default='')

# Scanning
PAGE_SIZE = config('PHOTOWRAP_PAGE_SIZE', default=1000, cast=int)
LOCATION_BATCH_SIZE = config('PHOTOWRAP_LOCATION_BATCH_SIZE', default=10, cast=int)
MIN_LOCATION_BATCH_SIZE = 10
MAX_LOCATION_BATCH_SIZE = 20

# Spatial grid
CELL_SIZE_METERS = 120
METERS_PER_DEGREE = 111320
POLAR_COS_THRESHOLD = 0.01                  # below this cos(lat) the longitude step falls back to the latitude step

# Places
MIN_PHOTOS_PER_PLACE = 3
TOP_PLACES = 10
REPRESENTATIVES_PER_PLACE = 9
UNKNOWN_PLACE_LABEL = 'Unknown Place'

# Cards
CARD_SAMPLE_SIZE = 6
COLLAGE_SIZE = 9
DISTINCT_PLACES_PREVIEW = 6
INCLUDE_MOST_EXPLORED_CARD = config('PHOTOWRAP_INCLUDE_MOST_EXPLORED_CARD', default=False, cast=bool)

# Geocoding
GEOCODER_USER_AGENT = config('PHOTOWRAP_GEOCODER_USER_AGENT', default='photowrap/1.0')
GEOCODER_TIMEOUT = config('PHOTOWRAP_GEOCODER_TIMEOUT', default=10.0, cast=float)
GEOCODER_MIN_INTERVAL = config('PHOTOWRAP_GEOCODER_MIN_INTERVAL', default=1.0, cast=float)

# Folder photo library
PHOTO_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.tiff', '.tif', '.heic', '.webp')
VIDEO_EXTENSIONS = ('.mov', '.mp4', '.m4v', '.avi')
