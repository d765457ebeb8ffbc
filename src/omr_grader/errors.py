# -*- coding: utf-8 -*-

"""Exception hierarchy for the OMR pipeline."""

from __future__ import annotations


class OMRError(Exception):
    """Base class for every error raised by omr_grader."""


class ConfigError(OMRError, ValueError):
    pass


class InputValidationError(OMRError, ValueError):
    """A file was rejected before it entered the pixel pipeline."""


class ImageDecodeError(OMRError):
    """Image bytes could not be decoded (corrupt or unsupported)."""


class InvalidGradingInputError(OMRError, ValueError):
    pass
