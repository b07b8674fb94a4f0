"""Parameters, edge points, ellipse fitting, image cuts and signal scoring for concentric-ring fiducial markers."""

__version__ = "0.1.0"