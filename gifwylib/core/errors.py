#!/usr/bin/env python3

#============================================

class GifwyError(RuntimeError):
	"""Base class for typed gifwy failures."""

#============================================

class NoVideoTrack(GifwyError):
	pass

#============================================

class TooShort(GifwyError):
	pass

#============================================

class EmptyResult(GifwyError):
	pass

#============================================

class Cancelled(GifwyError):
	pass

#============================================

class DecodeError(GifwyError):
	"""Wraps an underlying decoder failure, optionally for one timestamp."""
	def __init__(self, message: str, timestamp: float = None):
		super().__init__(message)
		self.timestamp = timestamp

#============================================

class EncodeError(GifwyError):
	pass
