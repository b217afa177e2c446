"""A vision service that hands cameras from its dependencies to a 3D segmenter."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from .clustering import VisionObject

Segmenter = Callable[[Any], list[VisionObject]]
Detector = Callable[[Any], list[Any]]
Classifier = Callable[[Any, int], list[Any]]


class ResourceNotFoundError(LookupError):
    """Raised when a named resource is not among the service's dependencies."""


@dataclass(frozen=True)
class Properties:
    """What kinds of vision results a service can produce."""

    classification_supported: bool = False
    detection_supported: bool = False
    object_pcds_supported: bool = False


@dataclass
class VisionService:
    """A named vision service backed by a point cloud segmenter.

    A detector and a classifier may also be supplied; without them the
    corresponding calls fail.
    """

    name: str
    deps: Mapping[str, Any] = field(default_factory=dict)
    segmenter: Optional[Segmenter] = None
    default_camera: str = ""
    detector: Optional[Detector] = None
    classifier: Optional[Classifier] = None

    def get_properties(self, extra: Optional[Mapping[str, Any]] = None) -> Properties:
        """Report which kinds of results this service can produce."""
        return Properties(
            classification_supported=self.classifier is not None,
            detection_supported=self.detector is not None,
            object_pcds_supported=self.segmenter is not None,
        )

    def get_object_point_clouds(
        self, camera_name: str = "", extra: Optional[Mapping[str, Any]] = None
    ) -> list[VisionObject]:
        """Segment the named camera's view, or the default camera's, into objects."""
        if self.segmenter is None:
            raise NotImplementedError(
                f"vision service {self.name} does not implement a 3D segmenter"
            )
        name = camera_name or self.default_camera
        try:
            camera = self.deps[name]
        except KeyError:
            raise ResourceNotFoundError(
                f"Resource missing from dependencies. Resource: {name}"
            ) from None
        return self.segmenter(camera)

    def detections(self, image: Any, extra: Optional[Mapping[str, Any]] = None) -> list[Any]:
        """Run the detector on an image; fails if the service has none."""
        if self.detector is None:
            raise NotImplementedError(
                f"vision service {self.name} does not implement a Detector"
            )
        if image is None:
            raise ValueError("image cannot be None")
        return list(self.detector(image))

    def classifications(
        self, image: Any, n: int, extra: Optional[Mapping[str, Any]] = None
    ) -> list[Any]:
        """Return the top n classifications of an image; fails if there is no classifier."""
        if self.classifier is None:
            raise NotImplementedError(
                f"vision service {self.name} does not implement a Classifier"
            )
        if image is None:
            raise ValueError("image cannot be None")
        return list(self.classifier(image, n))[: max(n, 0)]