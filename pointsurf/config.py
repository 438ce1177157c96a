"""
Configuration & Global Constants
================================
Central registry of the tunable constants used by the point cloud manager,
the tetrahedral surface extractor and the file readers/writers.

Every constant here is a default: the functions that use one accept it as a
keyword argument so a caller can override it per call.
"""

#neighbourhood sizes (normal estimation, interpolation, distance queries)
DEFAULT_KN = 10
DEFAULT_KI = 10
DEFAULT_KD = 10

#a neighbourhood bounding box is ill-formed when one side is more than
#BOUNDING_BOX_RATIO times another side
BOUNDING_BOX_RATIO = 20.0

#how often an ill-formed neighbourhood is doubled before it is fitted anyway
MAX_NEIGHBORHOOD_GROWTH = 5

#clouds up to this size are searched exhaustively instead of with a KD-tree
BRUTE_FORCE_THRESHOLD = 64

#neighbour entries (query points * k) gathered per block in batched queries
QUERY_BLOCK_SIZE = 1 << 20

#middle / largest covariance eigenvalue below this ratio means collinear
COLLINEAR_TOLERANCE = 1e-10

#relative tolerance below which a point is treated as lying on the centroid
#plane when orienting normals
ORIENTATION_TOLERANCE = 1e-9

#surface extraction
DEFAULT_ISO_VALUE = 0.0
DEFAULT_GRID_PADDING = 2  #voxels of margin around the cloud bounding box
DEFAULT_MAX_DISTANCE_FACTOR = 3.0  #max anchor distance, in voxels
DEFAULT_VOXEL_FACTOR = 2.0  #voxel size / mean nearest-neighbour spacing

#file formats, selected by extension
POINT_FORMATS = frozenset({".xyz", ".pts", ".3d"})
NORMAL_FORMATS = frozenset({".nor"})
PLY_FORMATS = frozenset({".ply"})
