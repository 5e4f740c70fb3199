from __future__ import annotations


class BackgroundRemovalError(Exception):
    """Base class for every failure surfaced to a user."""


class InvalidImageError(BackgroundRemovalError, ValueError):
    """Pixel buffer is empty or its length disagrees with its dimensions."""


class DecodeError(BackgroundRemovalError):
    pass


class EncodeError(BackgroundRemovalError):
    pass


class NoInputAvailableError(BackgroundRemovalError):
    pass


class SegmentationError(BackgroundRemovalError):
    pass


class NoSubjectDetectedError(SegmentationError):
    pass
