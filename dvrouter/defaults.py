"""
Default protocol limits and timers for the distance-vector router.

The values are small on purpose so a handful of routers on one laptop
converge in a few announce periods.  Every value can be overridden from the
``defaults`` section of the topology file.
"""

MAX_DISTANCE = 16          # routing "infinity", inclusive
MAX_PATH_LEN = 10          # longest path a DATA packet may carry
MAX_NEIGHBOURS = 9
MAX_VECTOR_LEN = 30        # entries per ROUTE packet
MAX_MESSAGE_LEN = 255      # DATA payload bytes

ROUTE_PERIOD = 10          # seconds between ROUTE announcements
ROUTE_TTL_MARGIN = 5       # advertised vector TTL = period + margin
NEIGHBOUR_TIMEOUT = 0      # seconds of silence before eviction, 0 disables

DEFAULT_PORT = 20000
