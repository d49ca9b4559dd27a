"""Clinic notification dispatch engine: push, AlimTalk and SMS delivery with fallback and scheduled campaigns."""
