# constants.py
"""
Application-level constants.

These values are static and do not change between simulation runs.
They cover rendering properties and numerical guards that are not part
of the experimental configuration in config.json.
"""

# Visualization settings
# Extra window space around the bounding box, in pixels.
WINDOW_MARGIN_X = 100
WINDOW_MARGIN_Y = 150
# 0 means the frame rate is not capped.
FPS_CAP = 0
BACKGROUND_COLOR = (238, 238, 238) # Light Gray
CONTOUR_COLOR = (20, 20, 20)
BOUNDING_BOX_COLOR = (128, 128, 128)
TEXT_COLOR = (0, 0, 0)

# Default particle radius, shared by every particle.
DEFAULT_PARTICLE_RADIUS = 5.5

# --- Particle Coloring ---
# Speeds and accelerations are divided by this before clipping to [0, 1].
COLOR_VALUE_SCALE = 10.0

# --- Numerical Guards ---
# Pairs closer than this have no defined direction and are skipped.
MIN_SEPARATION = 1e-9
