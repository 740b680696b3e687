"""
Groups image topics under the camera that publishes them.
"""
from typing import Iterable, List

from ..models.topics import CameraGroup, TopicRecord, IMAGE_TYPE, CAMERA_INFO_TYPE

CAMERA_INFO_SUFFIX = '/camera_info'


def group_topics(topics: Iterable[TopicRecord]) -> List[CameraGroup]:
    """Assign each image topic to the first camera whose prefix it starts with.

    Camera-info topics are visited in discovery order. Each one ending in
    ``/camera_info`` yields a group whose base is the name without
    ``camera_info`` (trailing slash kept). Image topics are claimed greedily,
    so a topic already taken by an earlier group is never listed again, and
    image topics matching no group are left out.
    """
    image_topics = []
    camera_info_topics = []
    for topic in topics:
        if topic.datatype == IMAGE_TYPE:
            image_topics.append(topic.name)
        elif topic.datatype == CAMERA_INFO_TYPE:
            camera_info_topics.append(topic.name)

    groups = []
    for camera_info_topic in camera_info_topics:
        if not camera_info_topic.endswith(CAMERA_INFO_SUFFIX):
            continue
        base = camera_info_topic[:-len('camera_info')]
        claimed = [name for name in image_topics if name.startswith(base)]
        image_topics = [name for name in image_topics if not name.startswith(base)]
        groups.append(CameraGroup(base=base, image_topics=claimed))
    return groups


class TopicDirectory:
    """Computes camera groups from the bus on every call"""

    def __init__(self, bus):
        self.bus = bus

    def list_groups(self) -> List[CameraGroup]:
        return group_topics(self.bus.list_topics())
