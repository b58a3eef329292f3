"""Babelmark: structured document translation backed by a translation memory."""
