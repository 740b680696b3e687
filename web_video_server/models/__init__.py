"""
Shared data types and the session registry.
"""
from .topics import TopicRecord, CameraGroup, Frame, IMAGE_TYPE, CAMERA_INFO_TYPE
from .registry import SessionRegistry
