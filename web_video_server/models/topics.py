"""
Bus topic records, frames and derived camera groupings.
"""
from dataclasses import dataclass, field
from typing import List

IMAGE_TYPE = 'sensor_msgs/Image'
CAMERA_INFO_TYPE = 'sensor_msgs/CameraInfo'


@dataclass(frozen=True)
class TopicRecord:
    """One advertised bus topic"""
    name: str
    datatype: str


@dataclass(frozen=True)
class Frame:
    """One encoded image delivered on a bus topic"""
    topic: str
    data: bytes
    stamp: float


@dataclass
class CameraGroup:
    """Camera base prefix with the image topics it claimed"""
    base: str
    image_topics: List[str] = field(default_factory=list)

    def entries(self):
        """(full topic, topic relative to base) pairs in discovery order"""
        return [(topic, topic[len(self.base):]) for topic in self.image_topics]
