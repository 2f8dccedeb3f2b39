"""
PhysioCoach - real-time physiotherapy exercise analysis from body keypoints.
"""

__version__ = "0.1.0"
