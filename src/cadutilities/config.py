"""
Configuration & Drawing Defaults
================================
This module serves as the central registry for drawing defaults and global
constants.

Why is this file needed?
------------------------
1. Abstraction: It prevents magic numbers (tolerances, ByLayer codes)
   scattered throughout the code.
2. Defaults: New entities take their layer, color, linetype and lineweight
   from here unless the owning database overrides them.

Exports:
    DrawingDefaults: Frozen dataclass of entity property defaults.
    DEFAULT_DRAWING_DEFAULTS: The defaults used by databases and free entities.
    TOLERANCE (float): Geometric equality tolerance.
    LARGE_ATTRIBUTE_LIMIT (int): Size above which HDF5 payloads go to a dataset.
"""
from dataclasses import dataclass

# Color index 256 and lineweight -1 both mean "take the value from the layer".
COLOR_BYLAYER: int = 256
LINEWEIGHT_BYLAYER: int = -1


@dataclass(frozen=True)
class DrawingDefaults:
    layer: str = "0"
    color_index: int = COLOR_BYLAYER
    linetype: str = "ByLayer"
    lineweight: int = LINEWEIGHT_BYLAYER


# Global Constants
DEFAULT_DRAWING_DEFAULTS: DrawingDefaults = DrawingDefaults()
TOLERANCE: float = 1e-9
LARGE_ATTRIBUTE_LIMIT: int = 60000  # HDF5 attributes are limited to 64KB
