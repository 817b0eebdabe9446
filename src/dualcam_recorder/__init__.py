"""
Dual Camera Recorder - Python Implementation
Side-by-side dual-camera capture with post-recording frame-rate correction.
"""

__version__ = "1.0.0"
__author__ = "Dual Camera Recorder Project"
__license__ = "MIT"
