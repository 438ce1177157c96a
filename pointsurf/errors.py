"""Exceptions raised by pointsurf."""


class PointSurfError(Exception):
    """Base class for all pointsurf errors."""


class DegenerateNeighborhoodError(PointSurfError):
    """A neighbourhood has too few or too collinear points to fit a plane.

    Raised by the fitting helpers. The normal estimation pass catches the
    condition per point and falls back to a centroid-based normal.
    """


class UnsupportedQueryError(PointSurfError, NotImplementedError):
    """The requested query is not provided by this point cloud manager."""


class MalformedInputError(PointSurfError, ValueError):
    """Input file or array cannot be interpreted as a point cloud."""


class EmptyIndexError(PointSurfError):
    """A spatial index without points was asked for neighbours."""
