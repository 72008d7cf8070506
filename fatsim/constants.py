"""
Constants for the FAT volume simulator.
"""

# Volume and root identifiers
VOLUME_ID = 'vol0'
ROOT_ID = 'root'
ROOT_NAME = '/'

# Path syntax
ROOT_MARKER = 'X:/'
PATH_SEPARATOR = '/'

# FAT slot values
FAT_FREE = 0
FAT_RESERVED = 'RES'
FAT_BAD = 'BAD'
FAT_EOC = 'EOC'

# Clusters 0 and 1 are reserved, data starts at 2 (root directory)
RESERVED_CLUSTERS = (0, 1)
FIRST_DATA_CLUSTER = 2
ROOT_CLUSTER = 2
MIN_TOTAL_CLUSTERS = 3

# Geometry defaults
DEFAULT_BYTES_PER_SECTOR = 512
DEFAULT_TOTAL_CLUSTERS = 2048
DEFAULT_CLUSTER_SIZE = 4096
DEFAULT_FAT_TYPE = 'FAT32'
DEFAULT_LABEL = 'FAT-SIM'
FAT_TYPES = ('FAT12', 'FAT16', 'FAT32')

# Geometry used when a store is opened for the first time
BOOTSTRAP_TOTAL_CLUSTERS = 256
BOOTSTRAP_CLUSTER_SIZE = 64

# Entry types
TYPE_DIR = 'dir'
TYPE_FILE = 'file'

# Attribute flags, in display order
ATTR_READONLY = 'readonly'
ATTR_HIDDEN = 'hidden'
ATTR_SYSTEM = 'system'
ATTR_ARCHIVE = 'archive'
ATTR_NAMES = (ATTR_READONLY, ATTR_HIDDEN, ATTR_SYSTEM, ATTR_ARCHIVE)
ATTR_LETTERS = {
    'R': ATTR_READONLY,
    'H': ATTR_HIDDEN,
    'S': ATTR_SYSTEM,
    'A': ATTR_ARCHIVE,
}

# Event log actions
ACTION_FORMAT = 'FORMAT'
ACTION_ALLOC_BEGIN = 'ALLOC_BEGIN'
ACTION_ALLOC_FAIL = 'ALLOC_FAIL'
ACTION_ALLOC_PICK = 'ALLOC_PICK'
ACTION_FAT_LINK = 'FAT_LINK'
ACTION_FREE_BEGIN = 'FREE_BEGIN'
ACTION_FREE_CLUSTER = 'FREE_CLUSTER'
ACTION_WRITE_CLUSTER = 'WRITE_CLUSTER'
ACTION_WRITE_END = 'WRITE_END'
ACTION_CP_CLUSTER = 'CP_CLUSTER'
ACTION_CP_END = 'CP_END'
ACTION_MKDIR = 'MKDIR'
ACTION_TOUCH = 'TOUCH'
ACTION_RM = 'RM'
ACTION_MV = 'MV'
ACTION_CP = 'CP'
ACTION_ATTR = 'ATTR'
ACTION_MARK_BAD = 'MARK_BAD'

# Highlight lists in summary events are capped to keep the log readable
HIGHLIGHT_LIMIT = 8

# Persisted store layout version
STORE_FORMAT_VERSION = 1
