"""squatcount: squat / stand-up phase detection and rep counting.

Calibrates a standing baseline from body keypoints, classifies each sampled
frame as squat or stand-up, and counts completed squat -> stand-up cycles.
"""

__version__ = "0.1.0"
